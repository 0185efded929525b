"""
Settings Loader (``premium_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a typed
``premium_config.schema.LedgerSettings`` instance.  Runtime callers use
``premium_config.get_active_settings()`` rather than this module.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with descriptive messages; unknown keys
  are rejected rather than ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong types or unknown keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from premium_config.schema import LedgerSettings

_KNOWN_KEYS = frozenset({"log_level", "charge_on_registration", "engine_trace"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"ledger.{key} must be true or false, got {value!r}")
    return value


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse ``LedgerSettings`` from a loaded YAML document.

    The settings live under a top-level ``ledger`` key; an empty document
    yields the defaults.
    """
    if not isinstance(data, dict):
        raise ValueError("Settings document must be a mapping")
    section = data.get("ledger") or {}
    if not isinstance(section, dict):
        raise ValueError("'ledger' section must be a mapping")

    unknown = set(section) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown ledger setting(s): {', '.join(sorted(unknown))}")

    log_level = section.get("log_level", "INFO")
    if not isinstance(log_level, str):
        raise ValueError(f"ledger.log_level must be a string, got {log_level!r}")

    return LedgerSettings(
        log_level=log_level.upper(),
        charge_on_registration=_parse_bool(section, "charge_on_registration", True),
        engine_trace=_parse_bool(section, "engine_trace", True),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> LedgerSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
