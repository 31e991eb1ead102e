"""
timesheet_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the only way to obtain settings at runtime through
    ``get_active_config()``.  Returns a frozen ``TimesheetSettings``.

Architecture position:
    Configuration -- sits above ``timesheet_kernel``.  The kernel never
    imports from this package; ``bridges`` translates settings into a
    kernel ``WorkflowPolicy``.

Resolution order:
    1. explicit ``path`` argument
    2. ``TIMESHEET_CONFIG`` environment variable
    3. the packaged ``defaults.yaml``

Failure modes:
    - ``FileNotFoundError`` -- the resolved file does not exist.
    - ``ValueError`` -- unknown keys or out-of-range values.
    - ``yaml.YAMLError`` -- malformed YAML.

Audit relevance:
    Every call emits a ``TIMESHEET_CONFIG_TRACE`` log entry carrying the
    source path and checksum, tying an operation's limits back to the
    exact file that set them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from timesheet_config.loader import load_settings
from timesheet_config.schema import TimesheetSettings

_logger = logging.getLogger("timesheet_kernel.config")

ENV_VAR = "TIMESHEET_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> TimesheetSettings:
    """Load, validate and return the active settings."""
    if path is None:
        path = os.environ.get(ENV_VAR) or DEFAULT_CONFIG_PATH
    source = Path(path)
    if not source.is_file():
        raise FileNotFoundError(f"Timesheet configuration not found: {source}")

    settings = load_settings(source)

    _logger.info(
        "TIMESHEET_CONFIG_TRACE",
        extra={
            "trace_type": "TIMESHEET_CONFIG_TRACE",
            "config_path": str(source),
            "checksum": settings.checksum,
            "lock_timeout_ms": settings.lock_timeout_ms,
        },
    )
    return settings


__all__ = ["DEFAULT_CONFIG_PATH", "ENV_VAR", "TimesheetSettings", "get_active_config"]
