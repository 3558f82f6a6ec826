"""Settlement calculator: how a gig's income is split.

The performance fee is split evenly among the musicians (the manager
included when claiming a share). The manager bonus goes entirely to the
manager. The technical fee is not split; the manager keeps whatever part of
it they claim and owes the rest.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from gigsettle.settlement.models import (
    Amount,
    BonusType,
    GigFinancials,
    SettlementResult,
    SplitPolicy,
    to_decimal,
)

CENT = Decimal("0.01")
_ZERO = Decimal(0)

_CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
}


def round_cents(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def split_divisor(gig: GigFinancials, policy: SplitPolicy) -> int:
    if gig.claim_performance_fee or policy is SplitPolicy.FULL_HEADCOUNT:
        return max(1, gig.number_of_musicians)
    return max(1, gig.number_of_musicians - 1)


def compute(gig: GigFinancials, policy: SplitPolicy | None = None) -> SettlementResult:
    """Compute the settlement figures for a single gig."""
    policy = policy or SplitPolicy.EXCLUDE_NON_CLAIMING_MANAGER
    musicians = gig.number_of_musicians

    if gig.manager_bonus_type is BonusType.FIXED:
        bonus = gig.manager_bonus_amount
    else:
        bonus = gig.performance_fee * gig.manager_bonus_amount / 100

    total_received = gig.performance_fee + gig.technical_fee + bonus
    per_musician = gig.performance_fee / split_divisor(gig, policy)

    perf_share = per_musician if gig.claim_performance_fee else _ZERO

    claim_amount = gig.technical_fee_claim_amount
    if not gig.claim_technical_fee:
        tech_share = _ZERO
        owed_for_technical = gig.technical_fee
    elif claim_amount is None:
        tech_share = gig.technical_fee
        owed_for_technical = _ZERO
    else:
        tech_share = min(claim_amount, gig.technical_fee)
        owed_for_technical = max(_ZERO, gig.technical_fee - claim_amount)

    my_earnings = perf_share + tech_share + bonus

    # Owed to the other performers on the full per-musician share, whatever the claim flags
    owed_to_band = (musicians - 1) * per_musician if musicians > 1 else _ZERO

    return SettlementResult(
        actual_manager_bonus=round_cents(bonus),
        total_received=round_cents(total_received),
        amount_per_musician=round_cents(per_musician),
        my_earnings=round_cents(my_earnings),
        amount_owed_to_others=round_cents(owed_to_band + owed_for_technical),
    )


def format_amount(amount: Amount, currency: str = "EUR") -> str:
    """Render an amount like ``€1,250.00`` for notification text."""
    value = round_cents(to_decimal(amount))
    code = currency.upper()
    symbol = _CURRENCY_SYMBOLS.get(code)
    sign = "-" if value < 0 else ""
    body = f"{abs(value):,.2f}"
    if symbol:
        return f"{sign}{symbol}{body}"
    return f"{sign}{body} {code}"
