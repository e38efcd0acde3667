"""
ledger_config -- single public entrypoint for engine settings.

Responsibility:
    Provides ``get_active_settings()``, the one way services obtain their
    thresholds.  Reads an explicit YAML file when given, otherwise the
    ``LEDGER_SETTINGS_FILE`` environment variable, otherwise the packaged
    ``defaults.yaml``.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_services``.  The kernel MUST NEVER import from here.

Audit relevance:
    Every call emits a ``LEDGER_CONFIG_TRACE`` log entry with the source
    path and the settings checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ledger_config.loader import compute_checksum, load_settings
from ledger_config.schema import LedgerSettings

_logger = logging.getLogger("ledger_kernel.config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "defaults.yaml"

SETTINGS_ENV_VAR = "LEDGER_SETTINGS_FILE"


def get_active_settings(config_path: Path | None = None) -> LedgerSettings:
    """The public settings entrypoint.

    Args:
        config_path: Explicit YAML file.  Falls back to the environment
            variable, then to the packaged defaults.

    Raises:
        FileNotFoundError: If the chosen file does not exist.
        ValueError: If validation fails.
    """
    env_path = os.environ.get(SETTINGS_ENV_VAR)
    path = config_path or (Path(env_path) if env_path else _DEFAULT_SETTINGS_FILE)
    settings = load_settings(path)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "source": str(path),
            "checksum": compute_checksum(settings),
        },
    )
    return settings


__all__ = ["LedgerSettings", "get_active_settings", "SETTINGS_ENV_VAR"]
