"""Tests for rate resolution and money proration."""

from decimal import Decimal

from otplus.calculators.amount_allocator import (
    allocate_amounts,
    bucket_multiplier,
    rate_from_amounts,
    resolve_rates,
)
from otplus.calculators.entry_classifier import classify_entry, entry_duration_hours
from otplus.models.analysis import AllocationBucket, ClassifiedEntry, EntryRates, Multipliers

D = Decimal
MULTIPLIERS = Multipliers(overtime=D("1.5"), tier2=D("2"), tier2_threshold=D("4"))


def _classified(entry):
    return ClassifiedEntry(
        entry=entry,
        classification=classify_entry(entry),
        duration_hours=entry_duration_hours(entry),
        sequence=0,
    )


class TestResolveRates:
    """Test earned, cost and profit rate resolution."""

    def test_hourly_rate(self, make_entry):
        """Test the hourly rate is the earned rate."""
        rates = resolve_rates(_classified(make_entry(rate=50)))

        assert rates.earned == D("50")
        assert rates.cost == D("0")
        assert rates.profit == D("50")
        assert rates.currency == "USD"

    def test_earned_rate_wins(self, make_entry):
        """Test an explicit earned rate wins over the hourly rate."""
        entry = make_entry(rate=50, earnedRate=80, costRate=30)

        rates = resolve_rates(_classified(entry))

        assert rates.earned == D("80")
        assert rates.cost == D("30")
        assert rates.profit == D("50")

    def test_zero_earned_rate_falls_back(self, make_entry):
        """Test a zero earned rate falls back to the hourly rate."""
        rates = resolve_rates(_classified(make_entry(rate=50, earnedRate=0)))
        assert rates.earned == D("50")

    def test_rates_from_amounts(self, make_entry):
        """Test rates are derived from amount totals when missing."""
        entry = make_entry(
            rate=None,
            hours=4,
            amounts=[{"type": "EARNED", "value": 200}, {"type": "COST", "value": 100}],
        )

        rates = resolve_rates(_classified(entry))

        assert rates.earned == D("50")
        assert rates.cost == D("25")

    def test_currency_from_hourly_rate(self, make_entry):
        """Test the hourly rate's currency is kept."""
        entry = make_entry(rate=None, hourlyRate={"amount": 40, "currency": "EUR"})
        assert resolve_rates(_classified(entry)).currency == "EUR"

    def test_non_billable_has_zero_rates(self, make_entry):
        """Test non-billable entries earn and cost nothing."""
        entry = make_entry(billable=False, rate=5000, costRate=100)

        rates = resolve_rates(_classified(entry))

        assert rates == EntryRates(earned=D("0"), cost=D("0"), currency="USD")

    def test_no_rate_at_all(self, make_entry):
        """Test entries without any rate data resolve to zero."""
        assert resolve_rates(_classified(make_entry(rate=None))).earned == D("0")


class TestRateFromAmounts:
    """Test amount-based rate derivation."""

    def test_sums_matching_amounts(self, make_entry):
        """Test several amounts of one type are summed."""
        entry = make_entry(
            amounts=[{"type": "EARNED", "value": 60}, {"type": "EARNED", "value": 60}]
        )
        assert rate_from_amounts(entry, "EARNED", D("8")) == D("15")

    def test_zero_duration(self, make_entry):
        """Test zero duration yields a zero rate."""
        entry = make_entry(amounts=[{"type": "EARNED", "value": 60}])
        assert rate_from_amounts(entry, "EARNED", D("0")) == D("0")


class TestAllocateAmounts:
    """Test proration of money across buckets."""

    def test_bucket_multipliers(self):
        """Test the multiplier of each bucket."""
        assert bucket_multiplier(AllocationBucket.REGULAR, MULTIPLIERS) == D("1")
        assert bucket_multiplier(AllocationBucket.OVERTIME_TIER1, MULTIPLIERS) == D("1.5")
        assert bucket_multiplier(AllocationBucket.OVERTIME_TIER2, MULTIPLIERS) == D("2")

    def test_base_and_premium(self):
        """Test base amounts and premiums per bucket."""
        buckets = allocate_amounts(
            {
                AllocationBucket.REGULAR: D("8"),
                AllocationBucket.OVERTIME_TIER1: D("4"),
                AllocationBucket.OVERTIME_TIER2: D("2"),
            },
            EntryRates(earned=D("50"), cost=D("30")),
            MULTIPLIERS,
        )

        regular = buckets[AllocationBucket.REGULAR]
        tier1 = buckets[AllocationBucket.OVERTIME_TIER1]
        tier2 = buckets[AllocationBucket.OVERTIME_TIER2]

        assert (regular.earned, regular.earned_premium) == (D("400"), D("0"))
        assert (tier1.earned, tier1.earned_premium) == (D("200"), D("100"))
        assert (tier2.earned, tier2.earned_premium) == (D("100"), D("100"))
        assert (tier1.cost, tier1.cost_premium) == (D("120"), D("60"))
        assert (tier1.profit, tier1.profit_premium) == (D("80"), D("40"))

    def test_tier2_multiplier_below_tier1(self):
        """Test tier-2 hours keep the configured lower multiplier."""
        buckets = allocate_amounts(
            {AllocationBucket.OVERTIME_TIER2: D("2")},
            EntryRates(earned=D("15")),
            Multipliers(overtime=D("1.5"), tier2=D("1"), tier2_threshold=D("0")),
        )

        tier2 = buckets[AllocationBucket.OVERTIME_TIER2]
        assert (tier2.earned, tier2.earned_premium) == (D("30"), D("0"))

    def test_every_bucket_present(self):
        """Test empty buckets are returned as zero allocations."""
        buckets = allocate_amounts(
            {AllocationBucket.REGULAR: D("3")}, EntryRates(earned=D("10")), MULTIPLIERS
        )

        assert set(buckets) == set(AllocationBucket)
        assert buckets[AllocationBucket.OVERTIME_TIER2].hours == D("0")

    def test_money_conservation(self):
        """Test base amounts add up to rate times total hours."""
        hours = {
            AllocationBucket.REGULAR: D("7.25"),
            AllocationBucket.OVERTIME_TIER1: D("1.5"),
            AllocationBucket.OVERTIME_TIER2: D("0.75"),
        }
        rates = EntryRates(earned=D("83.33"), cost=D("41.1"))

        buckets = allocate_amounts(hours, rates, MULTIPLIERS)

        total_hours = sum(hours.values(), D("0"))
        assert sum((b.earned for b in buckets.values()), D("0")) == rates.earned * total_hours
        assert sum((b.cost for b in buckets.values()), D("0")) == rates.cost * total_hours
