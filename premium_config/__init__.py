"""
premium_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the way to obtain settings at runtime through
    ``get_active_settings()`` and to apply their logging part through
    ``apply_logging()``.  The kernel and engines never read configuration
    files themselves; the settlement ledger receives a ``LedgerSettings``.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful ``get_active_settings()`` call emits a
    ``PREMIUM_CONFIG_TRACE`` log entry carrying the file path and the
    checksum of the parsed document.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from premium_config.loader import load_settings
from premium_config.schema import LedgerSettings
from premium_kernel.logging_config import configure_logging

_logger = logging.getLogger("premium_kernel.config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_ENV_VAR = "PREMIUM_LEDGER_CONFIG"

__all__ = [
    "CONFIG_ENV_VAR",
    "LedgerSettings",
    "apply_logging",
    "get_active_settings",
]


def get_active_settings(path: Path | str | None = None) -> LedgerSettings:
    """Load the active ledger settings.

    Resolution order: explicit ``path``, then the ``PREMIUM_LEDGER_CONFIG``
    environment variable, then ``premium_config/sets/default.yaml``.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else _DEFAULT_SETTINGS_FILE
    settings_path = Path(path)

    settings = load_settings(settings_path)

    _logger.info(
        "PREMIUM_CONFIG_TRACE",
        extra={
            "trace_type": "PREMIUM_CONFIG_TRACE",
            "settings_path": str(settings_path),
            "checksum": settings.checksum,
            "log_level": settings.log_level,
            "charge_on_registration": settings.charge_on_registration,
            "engine_trace": settings.engine_trace,
        },
    )
    return settings


def apply_logging(settings: LedgerSettings, handler: logging.Handler | None = None) -> None:
    """Configure the premium_kernel logger hierarchy from ``settings``."""
    configure_logging(level=settings.log_level, handler=handler)
    tracer = logging.getLogger("premium_kernel.engines.tracer")
    tracer.setLevel(logging.NOTSET if settings.engine_trace else logging.WARNING)
