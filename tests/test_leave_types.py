"""Leave-type resolution, day counting, date parsing and cap arithmetic."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from ems.common.constants import LeaveErrorCode
from ems.common.exceptions import LeaveRuleError
from ems.leave.balance import cap_earned_leave, compute_days, parse_leave_date
from ems.leave.buckets import LEAVE_TYPE_BUCKETS, LeaveBucket, resolve_leave_type


# ═════════════════════════════════════════════════════════════════════
# Resolver
# ═════════════════════════════════════════════════════════════════════


class TestResolveLeaveType:

    @pytest.mark.parametrize("label,bucket", list(LEAVE_TYPE_BUCKETS.items()))
    def test_every_known_label_resolves(self, label, bucket):
        assert resolve_leave_type(label) is bucket

    def test_every_bucket_has_a_label(self):
        assert set(LEAVE_TYPE_BUCKETS.values()) == set(LeaveBucket)

    def test_case_and_whitespace_insensitive(self):
        assert resolve_leave_type("  casual leave ") is LeaveBucket.casual
        assert resolve_leave_type("MEDICAL LEAVE") is LeaveBucket.medical

    def test_bare_earned_leave_is_non_encashable(self):
        assert resolve_leave_type("Earned Leave") is LeaveBucket.earned_non_encashable

    def test_substring_non_encashable(self):
        assert resolve_leave_type("EL non encashable") is LeaveBucket.earned_non_encashable
        assert resolve_leave_type("Leave - Non-Encashable") is LeaveBucket.earned_non_encashable

    def test_substring_encashable(self):
        assert resolve_leave_type("Encashable EL") is LeaveBucket.earned_encashable

    def test_substring_earned(self):
        assert resolve_leave_type("earned days") is LeaveBucket.earned_non_encashable

    @pytest.mark.parametrize("label", ["", "   ", None, "Sabbatical", "Holiday"])
    def test_unknown_returns_none(self, label):
        assert resolve_leave_type(label) is None

    def test_bucket_fields(self):
        assert LeaveBucket.casual.available_field == "casual_available"
        assert LeaveBucket.earned_non_encashable.approved_field == "earned_non_encashable_approved"
        assert LeaveBucket.hajj.label == "Hajj & Leave to Non-Muslims"


# ═════════════════════════════════════════════════════════════════════
# Day counting / date parsing
# ═════════════════════════════════════════════════════════════════════


class TestComputeDays:

    def test_single_day(self):
        assert compute_days(date(2025, 3, 1), date(2025, 3, 1)) == 1

    def test_inclusive_range(self):
        assert compute_days(date(2025, 3, 1), date(2025, 3, 3)) == 3

    def test_across_month_end(self):
        assert compute_days(date(2025, 1, 30), date(2025, 2, 2)) == 4

    def test_end_before_start_is_zero(self):
        assert compute_days(date(2025, 3, 3), date(2025, 3, 1)) == 0


class TestParseLeaveDate:

    def test_iso_date_string(self):
        assert parse_leave_date("2025-03-01") == date(2025, 3, 1)

    def test_iso_datetime_string_with_z(self):
        assert parse_leave_date("2025-03-01T23:30:00Z") == date(2025, 3, 1)

    def test_aware_datetime_converted_to_utc(self):
        plus5 = timezone(timedelta(hours=5))
        assert parse_leave_date(datetime(2025, 3, 2, 2, 0, tzinfo=plus5)) == date(2025, 3, 1)

    def test_date_passthrough(self):
        assert parse_leave_date(date(2025, 3, 1)) == date(2025, 3, 1)

    @pytest.mark.parametrize("value", ["not-a-date", "", "2025-13-01", None, 20250301])
    def test_invalid_values(self, value):
        with pytest.raises(LeaveRuleError) as exc_info:
            parse_leave_date(value)
        assert exc_info.value.code == LeaveErrorCode.invalid_dates.value


# ═════════════════════════════════════════════════════════════════════
# Combined earned-leave cap
# ═════════════════════════════════════════════════════════════════════


class TestCapEarnedLeave:

    def test_under_cap_untouched(self):
        assert cap_earned_leave(100, 200, 365) == (100, 200)

    def test_exactly_at_cap_untouched(self):
        assert cap_earned_leave(165, 200, 365) == (165, 200)

    def test_non_encashable_reduced_first(self):
        assert cap_earned_leave(300, 100, 365) == (265, 100)

    def test_encashable_reduced_after_non_exhausted(self):
        assert cap_earned_leave(10, 400, 365) == (0, 365)

    def test_negative_non_encashable_counts_as_zero(self):
        assert cap_earned_leave(-10, 400, 365) == (0, 365)

    def test_negative_encashable_counts_as_zero(self):
        assert cap_earned_leave(400, -20, 365) == (365, 0)

    def test_negative_under_cap_untouched(self):
        assert cap_earned_leave(-10, 50, 365) == (-10, 50)
