"""
Configuration Loader (``timesheet_config.loader``).

Responsibility
--------------
Reads one YAML file and parses it into a ``TimesheetSettings``.  Runtime
callers go through ``timesheet_config.get_active_config()`` instead.

Invariants enforced
-------------------
* Unknown keys are rejected; a typo never silently falls back to a default.
* ``compute_checksum`` is a deterministic SHA-256 of the canonical JSON
  form, so two files with the same content have the same checksum.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, wrong shape, or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from timesheet_config.schema import TimesheetSettings

_INT_KEYS = frozenset({
    "lock_timeout_ms",
    "max_period_days",
    "max_comment_length",
    "max_note_length",
    "max_message_length",
})
_ROLE_KEYS = frozenset({"manager_role_names", "general_manager_role_names"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(data: dict[str, Any]) -> TimesheetSettings:
    """Build settings from a parsed mapping; absent keys keep their defaults."""
    section = data.get("timesheet", data)
    if not isinstance(section, dict):
        raise ValueError("'timesheet' section must be a mapping")

    known = {f.name for f in fields(TimesheetSettings)} - {"checksum"}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for key, value in section.items():
        if key in _INT_KEYS:
            kwargs[key] = _parse_int(key, value)
        elif key in _ROLE_KEYS:
            kwargs[key] = _parse_roles(key, value)
        elif key == "max_hours_per_day":
            kwargs[key] = _parse_decimal(key, value)
        else:
            kwargs[key] = str(value)

    return TimesheetSettings(**kwargs, checksum=compute_checksum(section))


def load_settings(path: Path) -> TimesheetSettings:
    return parse_settings(load_yaml_file(path))


def _parse_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def _parse_decimal(key: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key} must be a number, got {value!r}") from None


def _parse_roles(key: str, value: Any) -> frozenset[str]:
    if isinstance(value, str) or not isinstance(value, list):
        raise ValueError(f"{key} must be a list of role names, got {value!r}")
    return frozenset(str(v).strip().lower() for v in value)
