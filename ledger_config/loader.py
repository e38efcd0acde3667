"""
Settings Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a ``LedgerSettings``
instance.  Runtime callers go through ``ledger_config.get_active_settings()``.

Invariants enforced
-------------------
* Only the ``ledger`` mapping of the document is read; other top-level keys
  belong to the surrounding application.
* Amounts are parsed from their YAML string form so that no float ever
  reaches ``Decimal``.
* ``compute_checksum`` produces a deterministic SHA-256 of the effective
  settings for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* A non-mapping ``ledger`` section -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import _DECIMAL_FIELDS, LedgerSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """Parse the ``ledger`` section of a settings document."""
    section = data.get("ledger", {})
    if not isinstance(section, dict):
        raise ValueError("'ledger' section must be a mapping")
    values = dict(section)
    for name in _DECIMAL_FIELDS:
        if name in values:
            values[name] = Decimal(str(values[name]))
    return LedgerSettings.from_dict(values)


def load_settings(path: Path) -> LedgerSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path))


def compute_checksum(settings: LedgerSettings) -> str:
    """Deterministic SHA-256 of the effective settings."""
    canonical = json.dumps(settings.to_dict(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
