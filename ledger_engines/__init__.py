"""
Pure calculation engines.

Engines take value objects and return value objects.  They never open a
session, read configuration or write logs outside their own calculation
events.
"""

from ledger_engines.paye import (
    BandLine,
    DeductionOverrides,
    PayeCalculator,
    PayeResult,
    ReliefInputs,
    ReliefLine,
    ReliefPolicy,
    select_health_bracket,
)

__all__ = [
    "BandLine",
    "DeductionOverrides",
    "PayeCalculator",
    "PayeResult",
    "ReliefInputs",
    "ReliefLine",
    "ReliefPolicy",
    "select_health_bracket",
]
