"""Tests for the settlement calculator."""

from decimal import Decimal

import pytest

from gigsettle.settlement import (
    BonusType,
    GigFinancials,
    GigStore,
    SplitPolicy,
    compute,
    format_amount,
    round_cents,
    settle_gig,
)


def gig(**overrides):
    fields = dict(
        performance_fee=1200,
        technical_fee=300,
        manager_bonus_type=BonusType.FIXED,
        manager_bonus_amount=50,
        number_of_musicians=4,
    )
    fields.update(overrides)
    return GigFinancials(**fields)


class TestCompute:
    def test_reference_scenario(self):
        result = compute(gig())
        assert result.amount_per_musician == Decimal("300.00")
        assert result.actual_manager_bonus == Decimal("50.00")
        assert result.my_earnings == Decimal("650.00")
        assert result.amount_owed_to_others == Decimal("900.00")
        assert result.total_received == Decimal("1550.00")

    def test_percentage_bonus_is_taken_from_performance_fee(self):
        result = compute(gig(
            performance_fee=1000,
            technical_fee=500,
            manager_bonus_type=BonusType.PERCENTAGE,
            manager_bonus_amount=10,
        ))
        assert result.actual_manager_bonus == Decimal("100.00")
        assert result.total_received == Decimal("1600.00")

    def test_single_musician_owes_band_nothing(self):
        result = compute(gig(number_of_musicians=1, claim_technical_fee=False))
        # Only the technical component is owed
        assert result.amount_owed_to_others == Decimal("300.00")
        assert result.amount_per_musician == Decimal("1200.00")

    def test_single_musician_claiming_everything_owes_nothing(self):
        result = compute(gig(number_of_musicians=1))
        assert result.amount_owed_to_others == Decimal("0.00")
        assert result.my_earnings == Decimal("1550.00")

    def test_not_claiming_technical_fee(self):
        result = compute(gig(
            performance_fee=900,
            technical_fee=300,
            manager_bonus_amount=0,
            number_of_musicians=3,
            claim_technical_fee=False,
        ))
        assert result.my_earnings == Decimal("300.00")
        assert result.amount_owed_to_others == Decimal("900.00")  # 2 * 300 + 300

    def test_partial_technical_claim(self):
        result = compute(gig(technical_fee_claim_amount=100))
        assert result.my_earnings == Decimal("450.00")  # 300 + 100 + 50
        assert result.amount_owed_to_others == Decimal("1100.00")  # 900 + 200

    def test_technical_claim_above_fee_is_clamped(self):
        over = compute(gig(technical_fee_claim_amount=500))
        exact = compute(gig(technical_fee_claim_amount=300))
        assert over == exact
        assert over.amount_owed_to_others == Decimal("900.00")
        assert over.my_earnings == Decimal("650.00")

    def test_partial_claim_ignored_when_not_claiming_technical(self):
        result = compute(gig(claim_technical_fee=False, technical_fee_claim_amount=100))
        assert result.my_earnings == Decimal("350.00")
        assert result.amount_owed_to_others == Decimal("1200.00")

    def test_zero_musicians_does_not_raise(self):
        result = compute(gig(number_of_musicians=0))
        assert result.amount_per_musician == Decimal("1200.00")
        assert result.amount_owed_to_others == Decimal("0.00")

    def test_float_inputs(self):
        result = compute(gig(performance_fee=0.1, technical_fee=0.2, manager_bonus_amount=0,
                             number_of_musicians=1))
        assert result.total_received == Decimal("0.30")


class TestSplitPolicy:
    def test_default_excludes_non_claiming_manager(self):
        result = compute(gig(claim_performance_fee=False))
        assert result.amount_per_musician == Decimal("400.00")
        assert result.my_earnings == Decimal("350.00")  # 300 tech + 50 bonus
        assert result.amount_owed_to_others == Decimal("1200.00")

    def test_explicit_exclude_policy_matches_default(self):
        default = compute(gig(claim_performance_fee=False))
        explicit = compute(gig(claim_performance_fee=False), SplitPolicy.EXCLUDE_NON_CLAIMING_MANAGER)
        assert default == explicit

    def test_full_headcount_policy(self):
        result = compute(gig(claim_performance_fee=False), SplitPolicy.FULL_HEADCOUNT)
        assert result.amount_per_musician == Decimal("300.00")
        assert result.my_earnings == Decimal("350.00")
        assert result.amount_owed_to_others == Decimal("900.00")

    def test_policy_irrelevant_when_claiming(self):
        a = compute(gig(), SplitPolicy.FULL_HEADCOUNT)
        b = compute(gig(), SplitPolicy.EXCLUDE_NON_CLAIMING_MANAGER)
        assert a == b

    def test_single_musician_not_claiming_keeps_divisor_at_one(self):
        result = compute(gig(number_of_musicians=1, claim_performance_fee=False))
        assert result.amount_per_musician == Decimal("1200.00")
        assert result.amount_owed_to_others == Decimal("0.00")
        assert result.my_earnings == Decimal("350.00")


class TestRounding:
    def test_thirds(self):
        result = compute(gig(performance_fee=1000, technical_fee=0, manager_bonus_amount=0,
                             number_of_musicians=3))
        assert result.amount_per_musician == Decimal("333.33")
        assert result.amount_owed_to_others == Decimal("666.67")

    def test_half_cent_rounds_away_from_zero(self):
        assert round_cents(Decimal("0.025")) == Decimal("0.03")
        assert round_cents(Decimal("-0.025")) == Decimal("-0.03")
        assert round_cents(Decimal("2.675")) == Decimal("2.68")

    @pytest.mark.parametrize("musicians", [1, 2, 3, 7])
    @pytest.mark.parametrize("claim_perf", [True, False])
    @pytest.mark.parametrize("claim_tech", [True, False])
    @pytest.mark.parametrize("policy", list(SplitPolicy))
    def test_totals_are_consistent(self, musicians, claim_perf, claim_tech, policy):
        g = gig(
            performance_fee=Decimal("1001.37"),
            technical_fee=Decimal("99.99"),
            manager_bonus_type=BonusType.PERCENTAGE,
            manager_bonus_amount=Decimal("12.5"),
            number_of_musicians=musicians,
            claim_performance_fee=claim_perf,
            claim_technical_fee=claim_tech,
        )
        result = compute(g, policy)
        expected_total = g.performance_fee + g.technical_fee + result.actual_manager_bonus
        assert abs(result.total_received - expected_total) <= Decimal("0.01")
        assert result.my_earnings + result.amount_owed_to_others <= result.total_received + Decimal("0.01")


class TestFromRecord:
    def test_camel_case_record(self):
        g = GigFinancials.from_record({
            "performanceFee": 1200,
            "technicalFee": "300",
            "managerBonusType": "percentage",
            "managerBonusAmount": 5,
            "numberOfMusicians": 4,
            "claimPerformanceFee": False,
            "technicalFeeClaimAmount": 120,
        })
        assert g.performance_fee == Decimal("1200")
        assert g.technical_fee == Decimal("300")
        assert g.manager_bonus_type is BonusType.PERCENTAGE
        assert g.claim_performance_fee is False
        assert g.claim_technical_fee is True
        assert g.technical_fee_claim_amount == Decimal("120")

    def test_clamps_bad_values(self):
        g = GigFinancials.from_record({
            "performance_fee": -50,
            "technical_fee": "not a number",
            "manager_bonus_type": "bogus",
            "manager_bonus_amount": -1,
            "number_of_musicians": 0,
        })
        assert g.performance_fee == Decimal(0)
        assert g.technical_fee == Decimal(0)
        assert g.manager_bonus_type is BonusType.FIXED
        assert g.manager_bonus_amount == Decimal(0)
        assert g.number_of_musicians == 1

    def test_rounds_musician_count(self):
        assert GigFinancials.from_record({"numberOfMusicians": 2.6}).number_of_musicians == 3

    @pytest.mark.parametrize("raw", ["false", "False", "0", "no", " off "])
    def test_string_false_flags(self, raw):
        g = GigFinancials.from_record({"claimPerformanceFee": raw, "claim_technical_fee": raw})
        assert g.claim_performance_fee is False
        assert g.claim_technical_fee is False

    @pytest.mark.parametrize("raw", ["true", "1", "yes"])
    def test_string_true_flags(self, raw):
        assert GigFinancials.from_record({"claimPerformanceFee": raw}).claim_performance_fee is True

    def test_missing_optional_fields_claim_everything(self):
        g = GigFinancials.from_record({
            "performanceFee": 100,
            "claimPerformanceFee": None,
            "technicalFeeClaimAmount": None,
        })
        assert g.claim_performance_fee is True
        assert g.claim_technical_fee is True
        assert g.technical_fee_claim_amount is None


class TestFormatAmount:
    def test_euro(self):
        assert format_amount(1250) == "€1,250.00"

    def test_dollar(self):
        assert format_amount(Decimal("99.999"), "usd") == "$100.00"

    def test_unknown_currency_uses_code(self):
        assert format_amount(12.5, "CHF") == "12.50 CHF"

    def test_negative(self):
        assert format_amount(-3, "GBP") == "-£3.00"


class _DictGigStore(GigStore):
    def __init__(self, gigs):
        self._gigs = gigs

    async def load(self, gig_id):
        try:
            return self._gigs[gig_id]
        except KeyError:
            raise LookupError(gig_id) from None


class TestSettleGig:
    async def test_settles_loaded_gig(self):
        store = _DictGigStore({"g1": gig()})
        result = await settle_gig(store, "g1")
        assert result.my_earnings == Decimal("650.00")

    async def test_policy_is_passed_through(self):
        store = _DictGigStore({"g1": gig(claim_performance_fee=False)})
        result = await settle_gig(store, "g1", SplitPolicy.FULL_HEADCOUNT)
        assert result.amount_per_musician == Decimal("300.00")

    async def test_missing_gig_raises(self):
        with pytest.raises(LookupError):
            await settle_gig(_DictGigStore({}), "nope")

    def test_as_dict_uses_camel_case(self):
        assert set(compute(gig()).as_dict()) == {
            "actualManagerBonus",
            "totalReceived",
            "amountPerMusician",
            "myEarnings",
            "amountOwedToOthers",
        }
