"""
ledger_config.schema
====================

Responsibility:
    Configuration schema for the reconciliation and allocation engine.
    Defines the structure, validation rules, and defaults for the matching
    thresholds, the adjustment ceiling and the allocation tolerance.
    Values are loaded at runtime via ``ledger_config.get_active_settings()``.

Architecture:
    Config layer.  Consumed by services, which hand the relevant values to
    the pure engines.  MUST NOT be imported by ledger_kernel.

Invariants enforced:
    - All monetary thresholds are ``Decimal`` -- never ``float``.
    - Tolerances are non-negative; ``close_match_ratio`` lies in (0, 1).
    - Day thresholds are non-negative integers.

Failure modes:
    - Invalid configuration values -> ``ValueError`` from ``__post_init__``.
    - Unknown keys in ``from_dict`` -> ``TypeError`` from the dataclass.

Audit relevance:
    ``adjustment_ceiling`` bounds every discrepancy finance can commit
    without re-issuing an invoice.  Changes to it should be audited.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("config.settings")

_DECIMAL_FIELDS = (
    "amount_epsilon",
    "close_match_ratio",
    "adjustment_ceiling",
    "allocation_tolerance",
)


@dataclass
class LedgerSettings:
    """
    Tunable thresholds of the ledger engine.

    Contract:
        All fields have defaults matching the behaviour operators know.
        ``__post_init__`` validates every constraint and raises
        ``ValueError`` on violation.

    Example::

        settings = LedgerSettings(adjustment_ceiling=Decimal("250.00"))
    """

    # Matching
    amount_epsilon: Decimal = Decimal("0.01")
    close_match_ratio: Decimal = Decimal("0.05")
    high_confidence_days: int = 5
    missing_date_days: int = 999
    surface_low_confidence: bool = False

    # Credit coverage
    adjustment_ceiling: Decimal = Decimal("500.00")

    # Payee allocation
    allocation_tolerance: Decimal = Decimal("0.01")

    default_currency: str = "BRL"

    def __post_init__(self):
        for name in _DECIMAL_FIELDS:
            value = getattr(self, name)
            if isinstance(value, float):
                raise ValueError(f"{name} must be a Decimal or string, not float")
            if not isinstance(value, Decimal):
                setattr(self, name, Decimal(str(value)))

        if self.amount_epsilon <= 0:
            raise ValueError("amount_epsilon must be positive")
        if not (Decimal("0") < self.close_match_ratio < Decimal("1")):
            raise ValueError("close_match_ratio must lie between 0 and 1")
        if self.adjustment_ceiling < 0:
            raise ValueError("adjustment_ceiling cannot be negative")
        if self.allocation_tolerance < 0:
            raise ValueError("allocation_tolerance cannot be negative")
        if self.high_confidence_days < 0 or self.missing_date_days < 0:
            raise ValueError("day thresholds cannot be negative")
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be an ISO 4217 code")

        logger.info(
            "ledger_settings_initialized",
            extra={
                "adjustment_ceiling": str(self.adjustment_ceiling),
                "close_match_ratio": str(self.close_match_ratio),
                "high_confidence_days": self.high_confidence_days,
                "surface_low_confidence": self.surface_low_confidence,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create settings with the standard thresholds."""
        logger.info("ledger_settings_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create settings from a dictionary (e.g., a parsed YAML document)."""
        logger.info(
            "ledger_settings_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return {
            k: str(v) if isinstance(v, Decimal) else v
            for k, v in asdict(self).items()
        }
