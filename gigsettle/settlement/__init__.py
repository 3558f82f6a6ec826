"""Gig settlement calculation."""

from gigsettle.settlement.calculator import compute, format_amount, round_cents
from gigsettle.settlement.models import (
    BonusType,
    GigFinancials,
    SettlementResult,
    SplitPolicy,
)
from gigsettle.settlement.store import GigStore, settle_gig

__all__ = [
    "BonusType",
    "GigFinancials",
    "GigStore",
    "SettlementResult",
    "SplitPolicy",
    "compute",
    "format_amount",
    "round_cents",
    "settle_gig",
]
