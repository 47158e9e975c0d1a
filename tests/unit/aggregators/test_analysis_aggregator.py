"""Tests for the overtime analysis entry point and totals fold."""

from decimal import Decimal

import pytest

from otplus.aggregators.analysis_aggregator import (
    add_day,
    aggregate_totals,
    compute_analysis,
    subtract_day,
)
from otplus.aggregators.day_bucket_builder import UNDATED_DATE_KEY
from otplus.config.settings import CalculationConfig
from otplus.models.analysis import AllocationBucket, CapacitySource, UserPeriodTotals
from otplus.models.profile import Holiday, TimeOffInfo, UserOverride, UserProfile
from otplus.readers.absence_reader import build_time_off_map

D = Decimal
MONDAY = "2025-01-13"


def _at(date_key: str, hour: int = 9) -> str:
    return f"{date_key}T{hour:02d}:00:00Z"


class TestWorkedScenarios:
    """End-to-end worked examples."""

    def test_scenario_time_off_entry_reduces_capacity(self, make_entry):
        """Test 4h TIME_OFF + 6h work on an 8h day gives 8 regular, 2 overtime."""
        entries = [
            make_entry("t1", start=_at(MONDAY, 8), entry_type="TIME_OFF", hours=4),
            make_entry("w1", start=_at(MONDAY, 12), hours=6),
        ]

        result = compute_analysis(entries, CalculationConfig(apply_time_off=False))
        totals = result.get_user("user-1").totals

        assert totals.regular == D("8")
        assert totals.overtime == D("2")
        assert totals.total == D("10")
        assert totals.vacation_entry_hours == D("4")

    def test_scenario_api_partial_time_off(self, make_entry):
        """Test the same day with a 4h API time-off record."""
        entries = [
            make_entry("t1", start=_at(MONDAY, 8), entry_type="TIME_OFF", hours=4),
            make_entry("w1", start=_at(MONDAY, 12), hours=6),
        ]
        time_off = {"user-1": {MONDAY: TimeOffInfo(is_full_day=False, hours=D("4"))}}

        result = compute_analysis(entries, CalculationConfig(), time_off=time_off)
        totals = result.get_user("user-1").totals

        assert (totals.regular, totals.overtime, totals.total) == (D("8"), D("2"), D("10"))
        assert totals.time_off_count == 1
        assert totals.time_off_hours == D("4")

    def test_scenario_holiday_entry_makes_work_overtime(self, make_entry):
        """Test an 8h HOLIDAY entry plus 3h and 5h work gives 8 regular, 8 overtime."""
        entries = [
            make_entry("h1", start=_at(MONDAY, 0), entry_type="HOLIDAY", hours=8),
            make_entry("w1", start=_at(MONDAY, 9), hours=3),
            make_entry("w2", start=_at(MONDAY, 13), hours=5),
        ]

        result = compute_analysis(entries, CalculationConfig(apply_holidays=False))
        user = result.get_user("user-1")

        assert user.totals.regular == D("8")
        assert user.totals.overtime == D("8")
        assert user.totals.total == D("16")
        assert user.totals.holiday_count == 1
        assert user.days[MONDAY].meta.capacity_source is CapacitySource.ENTRY_DETECTED_HOLIDAY

    def test_scenario_tiered_overtime(self, make_entry):
        """Test one 14h entry with tiers on splits 8 / 4 / 2."""
        config = CalculationConfig(
            enable_tiered_ot=True, daily_threshold=8, tier2_threshold_hours=4
        )

        result = compute_analysis([make_entry(hours=14)], config)
        totals = result.get_user("user-1").totals

        assert totals.regular == D("8")
        assert totals.overtime_tier1 == D("4")
        assert totals.overtime_tier2 == D("2")
        assert totals.overtime == D("6")

    def test_scenario_non_billable_amounts_are_zero(self, make_entry):
        """Test a non-billable entry at a huge rate earns nothing."""
        result = compute_analysis(
            [make_entry(hours=12, billable=False, rate=5000, costRate=100)],
            CalculationConfig(),
        )
        user = result.get_user("user-1")
        allocation = user.days[MONDAY].allocations[0]

        for bucket in allocation.buckets.values():
            assert bucket.earned == bucket.cost == bucket.profit == D("0")
            assert bucket.earned_premium == bucket.cost_premium == bucket.profit_premium == D("0")
        assert user.totals.amount_earned == D("0")
        assert user.totals.amount_cost == D("0")
        assert user.totals.non_billable_worked == D("8")
        assert user.totals.non_billable_ot == D("4")

    def test_scenario_single_day_time_off_span(self, make_entry):
        """Test a time-off span ending on its start reduces exactly one day."""
        time_off = build_time_off_map(
            [
                {
                    "userId": "user-1",
                    "status": "APPROVED",
                    "timeOffPeriod": {"period": {"start": _at(MONDAY, 0), "end": _at(MONDAY, 0)}},
                }
            ]
        )

        result = compute_analysis(
            [make_entry(start=_at("2025-01-14"), hours=8)],
            CalculationConfig(),
            time_off=time_off,
            date_range=(MONDAY, "2025-01-15"),
        )
        user = result.get_user("user-1")

        reduced = [k for k, day in user.days.items() if day.meta.is_time_off]
        assert reduced == [MONDAY]
        assert user.totals.time_off_count == 1
        assert user.totals.expected_capacity == D("16")


class TestCapacityPrecedence:
    """Test capacity source precedence through the full run."""

    def test_api_holiday_name_wins(self, make_entry):
        """Test the API holiday name is reported, not the entry description."""
        entries = [make_entry(entry_type="HOLIDAY", description="Day off")]
        holidays = {"user-1": {MONDAY: Holiday(name="Founders Day")}}

        result = compute_analysis(entries, CalculationConfig(), holidays=holidays)
        meta = result.get_user("user-1").days[MONDAY].meta

        assert meta.holiday_name == "Founders Day"
        assert meta.capacity_source is CapacitySource.API_HOLIDAY

    def test_profile_and_override_inputs_as_dicts(self, make_entry):
        """Test raw camelCase inputs are accepted."""
        result = compute_analysis(
            [make_entry(hours=8)],
            CalculationConfig(),
            profiles={"user-1": {"workCapacityHours": 6}},
            overrides={"user-1": {"mode": "perDay", "perDayOverrides": {MONDAY: {"capacity": "5"}}}},
        )
        user = result.get_user("user-1")

        assert user.days[MONDAY].meta.capacity_source is CapacitySource.MANUAL_OVERRIDE
        assert user.totals.overtime == D("3")

    def test_non_working_day_work_is_overtime(self, make_entry):
        """Test weekend work on a Monday-to-Friday profile is all overtime."""
        profiles = {"user-1": UserProfile(work_capacity_hours=D("8"), working_days=["MONDAY"])}

        result = compute_analysis(
            [make_entry(start=_at("2025-01-18"), hours=3)], CalculationConfig(), profiles=profiles
        )
        user = result.get_user("user-1")

        assert user.totals.overtime == D("3")
        assert "OFF-DAY" in user.days["2025-01-18"].allocations[0].tags


class TestAmounts:
    """Test money totals and display modes."""

    def test_tiered_premiums(self, make_entry):
        """Test tier-1 and tier-2 premiums are reported separately."""
        config = CalculationConfig(
            enable_tiered_ot=True, tier2_threshold_hours=4, tier2_multiplier=2
        )

        totals = compute_analysis([make_entry(hours=14, rate=50)], config).users[0].totals

        assert totals.amount_earned_base == D("700")
        assert totals.ot_premium_earned == D("150")
        assert totals.ot_premium_tier2_earned == D("50")
        assert totals.amount_earned == D("900")
        assert totals.amount == totals.amount_earned

    def test_tier2_multiplier_below_tier1(self, make_entry):
        """Test a lower tier-2 multiplier reports a negative tier-2 premium."""
        config = CalculationConfig(
            enable_tiered_ot=True, tier2_threshold_hours=1, tier2_multiplier=1
        )

        totals = compute_analysis([make_entry(hours=10, rate=15)], config).users[0].totals

        assert totals.overtime_tier2 == D("1")
        assert totals.ot_premium_tier2_earned == D("-7.5")
        assert totals.ot_premium_earned == D("15")
        assert totals.amount_earned == D("157.5")

    def test_profit_display_mode(self, make_entry):
        """Test display fields follow the profit mode."""
        config = CalculationConfig(amount_display="profit")

        totals = compute_analysis(
            [make_entry(hours=10, rate=50, costRate=20)], config
        ).users[0].totals

        assert totals.amount_profit_base == D("300")
        assert totals.ot_premium_profit == D("30")
        assert totals.amount == D("330")
        assert totals.profit == D("330")
        assert totals.amount_cost == D("220")

    def test_override_multiplier(self, make_entry):
        """Test a per-user multiplier override changes the premium."""
        totals = compute_analysis(
            [make_entry(hours=10, rate=100)],
            CalculationConfig(),
            overrides={"user-1": UserOverride(multiplier=D("2"))},
        ).users[0].totals

        assert totals.ot_premium_earned == D("200")

    def test_money_conservation(self, make_entry):
        """Test base amounts equal rate times hours over all buckets."""
        entries = [
            make_entry("e1", start=_at(MONDAY, 8), hours=5.5, rate=42.5),
            make_entry("e2", start=_at(MONDAY, 14), hours=4.25, rate=42.5),
        ]

        result = compute_analysis(entries, CalculationConfig())
        allocations = result.users[0].days[MONDAY].allocations

        base = sum(
            (b.earned for a in allocations for b in a.buckets.values()), D("0")
        )
        assert base == D("42.5") * D("9.75")
        assert result.users[0].totals.amount_earned_base == base


class TestAggregation:
    """Test hour totals, date ranges and user handling."""

    def test_hour_conservation(self, make_entry):
        """Test bucket hours sum to entry durations for every entry."""
        entries = [
            make_entry("e1", start=_at(MONDAY, 7), hours=6),
            make_entry("b1", start=_at(MONDAY, 13), entry_type="BREAK", hours=0.5),
            make_entry("e2", start=_at(MONDAY, 14), hours=4.75),
            make_entry("e3", start=_at("2025-01-14", 8), hours=9.5),
        ]

        result = compute_analysis(entries, CalculationConfig(enable_tiered_ot=True, tier2_threshold_hours=1))
        user = result.users[0]

        for day in user.days.values():
            for classified, allocation in zip(day.entries, day.allocations):
                assert allocation.total_hours == classified.duration_hours
        assert user.totals.total == D("20.75")
        assert user.totals.regular + user.totals.overtime == user.totals.total
        assert user.totals.breaks == D("0.5")
        assert "BREAK" in user.days[MONDAY].allocations[1].tags

    def test_weekly_basis(self, make_entry):
        """Test the weekly threshold replaces daily capacity for the split."""
        entries = [
            make_entry(f"e{i}", start=_at(f"2025-01-{13 + i}"), hours=10) for i in range(4)
        ] + [make_entry("e4", start=_at("2025-01-17"), hours=2)]

        daily = compute_analysis(entries, CalculationConfig()).users[0].totals
        weekly = compute_analysis(
            entries, CalculationConfig(overtime_basis="weekly")
        ).users[0].totals

        assert daily.overtime == D("8")
        assert weekly.overtime == D("2")
        assert weekly.expected_capacity == daily.expected_capacity == D("40")

    def test_weekly_basis_resets_each_iso_week(self, make_entry):
        """Test the weekly counter starts over on Monday."""
        entries = [
            make_entry("sun", start=_at("2025-01-19"), hours=30),
            make_entry("mon", start=_at("2025-01-20"), hours=30),
        ]

        result = compute_analysis(
            entries, CalculationConfig(overtime_basis="weekly", weekly_threshold=40)
        )

        assert result.users[0].totals.overtime == D("0")

    def test_date_range_days_without_entries(self, make_entry):
        """Test every day in the range gets a record and capacity."""
        result = compute_analysis(
            [make_entry(hours=2)],
            CalculationConfig(),
            holidays={"user-1": {"2025-01-15": Holiday(name="Mid-week")}},
            date_range=(MONDAY, "2025-01-17"),
        )
        user = result.users[0]

        assert result.date_keys == [
            "2025-01-13", "2025-01-14", "2025-01-15", "2025-01-16", "2025-01-17",
        ]
        assert sorted(user.days) == result.date_keys
        assert user.totals.expected_capacity == D("32")
        assert user.totals.holiday_count == 1
        assert user.totals.holiday_hours == D("8")

    def test_entries_outside_range_are_included(self, make_entry):
        """Test entry dates outside the requested range are not dropped."""
        result = compute_analysis(
            [make_entry(start=_at("2025-01-20"), hours=3)],
            CalculationConfig(),
            date_range=(MONDAY, MONDAY),
        )

        assert result.date_keys == [MONDAY, "2025-01-20"]
        assert result.users[0].totals.total == D("3")

    def test_undated_entries_are_regular(self, make_entry):
        """Test undated work is kept as regular time without capacity."""
        entries = [make_entry("u1", start=None, hours=12), make_entry("e1", hours=9)]

        user = compute_analysis(entries, CalculationConfig()).users[0]

        assert UNDATED_DATE_KEY in user.days
        assert user.days[UNDATED_DATE_KEY].allocations[0].regular_hours == D("12")
        assert user.totals.total == D("21")
        assert user.totals.overtime == D("1")
        assert user.totals.expected_capacity == D("8")

    def test_roster_users_without_entries(self, make_entry):
        """Test rostered users get capacity-only results."""
        result = compute_analysis(
            [make_entry(user_id="u1", user_name="Zed")],
            CalculationConfig(),
            users={"u2": "Ada"},
        )

        assert [u.user_name for u in result.users] == ["Ada", "Zed"]
        ada = result.get_user("u2")
        assert ada.totals.total == D("0")
        assert ada.totals.expected_capacity == D("8")

    def test_dict_entries_and_none(self):
        """Test raw dict entries and None items."""
        entries = [
            None,
            {
                "id": "e1",
                "userId": "u1",
                "userName": "Ada",
                "timeInterval": {"start": _at(MONDAY), "duration": "PT9H"},
                "hourlyRate": {"amount": 10},
            },
        ]

        result = compute_analysis(entries, CalculationConfig())

        assert result.get_user("u1").totals.overtime == D("1")

    def test_malformed_entry_item_is_skipped(self, make_entry, caplog):
        """Test an entry that is not a record is skipped with a warning."""
        result = compute_analysis([make_entry(hours=9), "garbage"], CalculationConfig())

        assert result.get_user("user-1").totals.total == D("9")
        assert "Skipping malformed time entry" in caplog.text

    def test_holiday_without_name(self, make_entry):
        """Test a holiday with a null name still zeroes capacity."""
        result = compute_analysis(
            [make_entry(hours=2)],
            CalculationConfig(),
            holidays={"user-1": {MONDAY: {"name": None}}},
        )
        meta = result.get_user("user-1").days[MONDAY].meta

        assert meta.capacity_source is CapacitySource.API_HOLIDAY
        assert meta.holiday_name == ""
        assert result.get_user("user-1").totals.overtime == D("2")

    def test_time_off_without_full_day_flag(self, make_entry):
        """Test a null isFullDay is read as a full day off."""
        result = compute_analysis(
            [make_entry(hours=2)],
            CalculationConfig(),
            time_off={"user-1": {MONDAY: {"isFullDay": None, "hours": 4}}},
        )
        meta = result.get_user("user-1").days[MONDAY].meta

        assert meta.capacity_source is CapacitySource.API_TIME_OFF
        assert meta.effective_capacity_hours == D("0")

    def test_malformed_absence_records_are_skipped(self, make_entry, caplog):
        """Test absence records that are not mappings are dropped with a warning."""
        result = compute_analysis(
            [make_entry(hours=9)],
            CalculationConfig(),
            holidays={"user-1": {MONDAY: "garbage"}, "user-2": ["not", "a", "map"]},
            time_off={"user-1": {MONDAY: 42}},
        )
        user = result.get_user("user-1")

        assert user.days[MONDAY].meta.effective_capacity_hours == D("8")
        assert user.totals.overtime == D("1")
        assert "Skipping malformed Holiday" in caplog.text
        assert "Skipping malformed TimeOffInfo" in caplog.text

    def test_empty_input(self):
        """Test no entries and no roster yields an empty result."""
        result = compute_analysis([], CalculationConfig())

        assert result.users == []
        assert result.date_keys == []

    def test_idempotence(self, make_entry):
        """Test identical inputs give identical totals."""
        entries = [make_entry("e1", hours=7), make_entry("e2", start=_at(MONDAY, 17), hours=3)]
        config = CalculationConfig(enable_tiered_ot=True, tier2_threshold_hours=1)

        first = compute_analysis(entries, config)
        second = compute_analysis(entries, config)

        assert first.users[0].totals == second.users[0].totals

    def test_result_metadata(self, make_entry):
        """Test the basis and display mode are echoed in the result."""
        result = compute_analysis(
            [make_entry()], CalculationConfig(overtime_basis="weekly", amount_display="cost")
        )

        assert result.overtime_basis == "weekly"
        assert result.amount_display == "cost"


class TestTotalsFold:
    """Test aggregate_totals, add_day and subtract_day."""

    @pytest.fixture
    def user(self, make_entry):
        entries = [
            make_entry("e1", start=_at(MONDAY), hours=10, rate=50),
            make_entry("e2", start=_at("2025-01-14"), hours=6, rate=50),
            make_entry("e3", start=_at("2025-01-15"), hours=9, rate=50, billable=False),
        ]
        return compute_analysis(
            entries,
            CalculationConfig(),
            time_off={"user-1": {"2025-01-14": TimeOffInfo(is_full_day=False, hours=D("2"))}},
        ).users[0]

    def test_aggregate_matches_run(self, user):
        """Test folding the days again reproduces the run totals."""
        assert aggregate_totals(user.days.values()) == user.totals

    def test_fold_is_order_independent(self, user):
        """Test reversing the days gives the same totals."""
        days = list(user.days.values())
        assert aggregate_totals(reversed(days)) == aggregate_totals(days)

    def test_subtract_day(self, user):
        """Test removing a day equals folding the remaining days."""
        removed = user.days["2025-01-14"]
        remaining = [d for k, d in user.days.items() if k != "2025-01-14"]

        result = subtract_day(user.totals, removed)

        assert result == aggregate_totals(remaining)
        assert result.time_off_count == 0
        assert user.totals.time_off_count == 1

    def test_add_day_round_trip(self, user):
        """Test subtracting then adding a day restores the totals."""
        day = user.days[MONDAY]
        assert add_day(subtract_day(user.totals, day), day) == user.totals

    def test_empty_fold(self):
        """Test folding no days yields zero totals."""
        assert aggregate_totals([]) == UserPeriodTotals()

    def test_bucket_lookup_on_allocation(self, user):
        """Test allocations expose every bucket."""
        allocation = user.days[MONDAY].allocations[0]

        assert allocation.bucket(AllocationBucket.OVERTIME_TIER1).hours == D("2")
        assert allocation.bucket(AllocationBucket.OVERTIME_TIER2).hours == D("0")
