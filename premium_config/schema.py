"""
LedgerSettings schema.

The human-authored YAML settings file is parsed into these frozen types by
the loader.  Settings are read once when a settlement ledger is built and
never change for its lifetime.
"""

from __future__ import annotations

from dataclasses import dataclass

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings of one settlement ledger."""

    log_level: str = "INFO"
    charge_on_registration: bool = True  # accrue the first premium when a contract is registered
    engine_trace: bool = True  # emit PREMIUM_ENGINE_TRACE records
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}, "
                f"got {self.log_level!r}"
            )
