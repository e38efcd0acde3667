"""Pure domain helpers shared by the kernel, engines and services."""

from ledger_kernel.domain.amounts import (
    EPSILON,
    ZERO,
    amounts_equal,
    to_amount,
)
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "EPSILON",
    "ZERO",
    "amounts_equal",
    "to_amount",
    "Clock",
    "SystemClock",
    "DeterministicClock",
]
