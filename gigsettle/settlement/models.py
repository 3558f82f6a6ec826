"""Gig financial snapshot and settlement result models."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

Amount = Decimal | int | float | str

# Form and CSV records carry flags as text
_FALSE_STRINGS = frozenset({"false", "0", "no", "off", "n", "f"})


class BonusType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class SplitPolicy(str, Enum):
    """How the performance fee is divided when the manager does not claim a share."""

    # Manager steps out of the split: fee / max(1, n - 1)
    EXCLUDE_NON_CLAIMING_MANAGER = "exclude_non_claiming_manager"
    # Fee is always divided by the full headcount: fee / n
    FULL_HEADCOUNT = "full_headcount"


def to_decimal(value: Amount | None) -> Decimal:
    """Convert a numeric value to Decimal without binary float artifacts."""
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        return Decimal(int(value))
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        return Decimal(0)
    return result if result.is_finite() else Decimal(0)


@dataclass(frozen=True)
class GigFinancials:
    performance_fee: Decimal
    technical_fee: Decimal
    manager_bonus_type: BonusType
    manager_bonus_amount: Decimal
    number_of_musicians: int
    claim_performance_fee: bool = True
    claim_technical_fee: bool = True
    technical_fee_claim_amount: Decimal | None = None

    def __post_init__(self) -> None:
        # Frozen, so normalise through object.__setattr__
        object.__setattr__(self, "performance_fee", to_decimal(self.performance_fee))
        object.__setattr__(self, "technical_fee", to_decimal(self.technical_fee))
        object.__setattr__(self, "manager_bonus_amount", to_decimal(self.manager_bonus_amount))
        object.__setattr__(self, "manager_bonus_type", BonusType(self.manager_bonus_type))
        if self.technical_fee_claim_amount is not None:
            object.__setattr__(
                self,
                "technical_fee_claim_amount",
                to_decimal(self.technical_fee_claim_amount),
            )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> GigFinancials:
        """Build a clamped snapshot from a raw gig record.

        Accepts camelCase (``performanceFee``) or snake_case
        (``performance_fee``) keys. Negative or non-numeric fees become 0,
        the musician count is rounded and floored at 1, an unknown bonus
        type falls back to ``fixed`` and a missing claim amount means the
        manager claims the whole technical fee.
        """

        def pick(snake: str, camel: str, default: Any = None) -> Any:
            if snake in record:
                return record[snake]
            return record.get(camel, default)

        def non_negative(value: Any) -> Decimal:
            return max(Decimal(0), to_decimal(value))

        def flag(value: Any) -> bool:
            if value is None:
                return True
            if isinstance(value, str):
                return value.strip().lower() not in _FALSE_STRINGS
            return bool(value)

        try:
            musicians = int(round(float(pick("number_of_musicians", "numberOfMusicians", 1))))
        except (TypeError, ValueError, OverflowError):
            musicians = 1

        try:
            bonus_type = BonusType(pick("manager_bonus_type", "managerBonusType") or "fixed")
        except ValueError:
            bonus_type = BonusType.FIXED

        claim_amount = pick("technical_fee_claim_amount", "technicalFeeClaimAmount")

        return cls(
            performance_fee=non_negative(pick("performance_fee", "performanceFee")),
            technical_fee=non_negative(pick("technical_fee", "technicalFee")),
            manager_bonus_type=bonus_type,
            manager_bonus_amount=non_negative(pick("manager_bonus_amount", "managerBonusAmount")),
            number_of_musicians=max(1, musicians),
            claim_performance_fee=flag(pick("claim_performance_fee", "claimPerformanceFee")),
            claim_technical_fee=flag(pick("claim_technical_fee", "claimTechnicalFee")),
            technical_fee_claim_amount=(
                None if claim_amount is None else non_negative(claim_amount)
            ),
        )


@dataclass(frozen=True)
class SettlementResult:
    actual_manager_bonus: Decimal
    total_received: Decimal
    amount_per_musician: Decimal
    my_earnings: Decimal
    amount_owed_to_others: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "actualManagerBonus": self.actual_manager_bonus,
            "totalReceived": self.total_received,
            "amountPerMusician": self.amount_per_musician,
            "myEarnings": self.my_earnings,
            "amountOwedToOthers": self.amount_owed_to_others,
        }
