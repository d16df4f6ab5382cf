"""Accrual engine tests — monthly credit, carry-forward, caps, casual reset,
the HR trigger endpoint and the scheduled job runner."""

from __future__ import annotations

from datetime import date

from sqlalchemy import func, select

import ems.leave.accrual as accrual_module
from ems.config import settings
from ems.leave.accrual import (
    enforce_combined_cap,
    reset_casual_leave,
    run_annual_carry_forward,
    run_monthly_accrual,
)
from ems.leave.balance import get_summary
from ems.leave.buckets import LeaveBucket
from ems.leave.models import AccrualLog, CarryLog
from scripts.run_leave_jobs import build_parser, previous_month, run
from tests.conftest import (
    EMPLOYEE_ID,
    OTHER_EMPLOYEE_ID,
    TestSessionFactory,
    fetch_balance,
    seed_balance,
    seed_timecards,
    weekdays_in_month,
    weekends_in_month,
)


async def _count(model, **filters) -> int:
    async with TestSessionFactory() as session:
        query = select(func.count()).select_from(model)
        for column, value in filters.items():
            query = query.where(getattr(model, column) == value)
        return (await session.execute(query)).scalar_one()


async def _reported_earned_total(emp_id: int) -> int:
    async with TestSessionFactory() as session:
        entries = await get_summary(session, emp_id)
    return sum(
        e["available"] for e in entries
        if e["bucket"] in (LeaveBucket.earned_non_encashable, LeaveBucket.earned_encashable)
    )


# ═════════════════════════════════════════════════════════════════════
# Monthly accrual
# ═════════════════════════════════════════════════════════════════════


class TestMonthlyAccrual:

    async def test_twenty_present_days_credit_both_buckets(self, db):
        await seed_balance(db, EMPLOYEE_ID)
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert summary.eligible == 1
        assert [c.emp_id for c in summary.credited] == [EMPLOYEE_ID]
        assert summary.credited[0].non_encashable == 2
        assert summary.credited[0].encashable == 2
        assert summary.failed == []

        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available == 2
        assert balance.earned_encashable_available == 2
        assert await _count(AccrualLog, emp_id=EMPLOYEE_ID, year=2025, month=3) == 1

    async def test_rerun_is_a_no_op(self, db):
        await seed_balance(db, EMPLOYEE_ID)
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))

        await run_monthly_accrual(TestSessionFactory, 2025, 3)
        second = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert second.credited == []
        assert second.already_logged == [EMPLOYEE_ID]
        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available == 2
        assert balance.earned_encashable_available == 2
        assert await _count(AccrualLog, emp_id=EMPLOYEE_ID) == 1

    async def test_missing_balance_row_is_created(self, db):
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 15))

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert len(summary.credited) == 1
        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance is not None
        assert balance.earned_non_encashable_available == 2

    async def test_below_threshold_not_eligible(self, db):
        await seed_balance(db, EMPLOYEE_ID)
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 14))

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert summary.eligible == 0
        assert summary.credited == []
        assert await _count(AccrualLog) == 0

    async def test_unclocked_days_marked_present_still_count(self, db):
        await seed_timecards(
            db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 15), clock_in=False,
        )
        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)
        assert summary.eligible == 1

    async def test_weekend_with_unknown_presence_counts(self, db):
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 10))
        await seed_timecards(db, EMPLOYEE_ID, weekends_in_month(2025, 3)[:5], present=None)

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert summary.eligible == 1
        assert [c.emp_id for c in summary.credited] == [EMPLOYEE_ID]

    async def test_weekday_with_unknown_presence_does_not_count(self, db):
        days = weekdays_in_month(2025, 3, 15)
        await seed_timecards(db, EMPLOYEE_ID, days[:14])
        await seed_timecards(db, EMPLOYEE_ID, days[14:], present=None)

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert summary.eligible == 0

    async def test_absent_days_do_not_count(self, db):
        days = weekdays_in_month(2025, 3, 20)
        await seed_timecards(db, EMPLOYEE_ID, days[:10])
        await seed_timecards(db, EMPLOYEE_ID, days[10:], present=False)

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert summary.eligible == 0

    async def test_other_months_ignored(self, db):
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 2, 20))
        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)
        assert summary.eligible == 0

    async def test_single_employee_filter(self, db):
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))
        await seed_timecards(db, OTHER_EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))

        summary = await run_monthly_accrual(
            TestSessionFactory, 2025, 3, employee_id=OTHER_EMPLOYEE_ID,
        )

        assert [c.emp_id for c in summary.credited] == [OTHER_EMPLOYEE_ID]
        assert await fetch_balance(EMPLOYEE_ID) is None

    async def test_yearly_ceiling(self, db, monkeypatch):
        monkeypatch.setattr(settings, "MAX_ACCRUALS_PER_YEAR", 2)
        await seed_balance(db, EMPLOYEE_ID)
        db.add_all([
            AccrualLog(emp_id=EMPLOYEE_ID, year=2025, month=1),
            AccrualLog(emp_id=EMPLOYEE_ID, year=2025, month=2),
        ])
        await db.commit()
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert summary.yearly_limit_reached == [EMPLOYEE_ID]
        assert summary.credited == []
        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available == 0
        assert await _count(AccrualLog, emp_id=EMPLOYEE_ID, month=3) == 0

    async def test_combined_cap_applied_after_credit(self, db):
        await seed_balance(
            db, EMPLOYEE_ID,
            earned_non_encashable_available=180,
            earned_encashable_available=183,
        )
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        credit = summary.credited[0]
        assert credit.non_encashable == 0
        assert credit.encashable == 2
        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available == 180
        assert balance.earned_encashable_available == 185

    async def test_one_failure_does_not_stop_the_run(self, db, monkeypatch):
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))
        await seed_timecards(db, OTHER_EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))

        real_apply_delta = accrual_module.apply_delta

        async def flaky_apply_delta(db, emp_id, *args, **kwargs):
            if emp_id == EMPLOYEE_ID:
                raise RuntimeError("simulated write failure")
            return await real_apply_delta(db, emp_id, *args, **kwargs)

        monkeypatch.setattr(accrual_module, "apply_delta", flaky_apply_delta)

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert summary.failed == [EMPLOYEE_ID]
        assert [c.emp_id for c in summary.credited] == [OTHER_EMPLOYEE_ID]
        # the failed employee's log claim rolled back with its transaction
        assert await _count(AccrualLog, emp_id=EMPLOYEE_ID) == 0
        assert await _count(AccrualLog, emp_id=OTHER_EMPLOYEE_ID) == 1

    async def test_january_carries_forward_first(self, db):
        await seed_balance(db, EMPLOYEE_ID, earned_non_encashable_available=45)
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2026, 1, 20))

        summary = await run_monthly_accrual(TestSessionFactory, 2026, 1)

        assert summary.carry_forward is not None
        assert summary.carry_forward.processed[0].carried == 20
        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available == 22
        assert balance.earned_encashable_available == 2

    async def test_other_months_skip_carry_forward(self, db):
        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)
        assert summary.carry_forward is None

    async def test_run_caps_employees_it_did_not_credit(self, db):
        await seed_balance(
            db, EMPLOYEE_ID,
            earned_non_encashable_available=300,
            earned_encashable_available=100,
        )

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert summary.credited == []
        assert [a.emp_id for a in summary.cap_enforcement.adjusted] == [EMPLOYEE_ID]
        assert await _reported_earned_total(EMPLOYEE_ID) == 365

    async def test_lost_log_claim_credits_nothing(self, db, monkeypatch):
        await seed_balance(db, EMPLOYEE_ID)
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))
        # a concurrent run wrote the log row after the existence check
        db.add(AccrualLog(emp_id=EMPLOYEE_ID, year=2025, month=3))
        await db.commit()

        async def not_logged(*args, **kwargs):
            return False

        monkeypatch.setattr(accrual_module, "_accrual_logged", not_logged)

        summary = await run_monthly_accrual(TestSessionFactory, 2025, 3)

        assert summary.already_logged == [EMPLOYEE_ID]
        assert summary.credited == []
        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available == 0
        assert balance.earned_encashable_available == 0
        assert await _count(AccrualLog, emp_id=EMPLOYEE_ID) == 1


# ═════════════════════════════════════════════════════════════════════
# Carry-forward
# ═════════════════════════════════════════════════════════════════════


class TestCarryForward:

    async def test_caps_non_encashable(self, db):
        await seed_balance(
            db, EMPLOYEE_ID,
            earned_non_encashable_available=45,
            earned_encashable_available=60,
        )

        summary = await run_annual_carry_forward(TestSessionFactory, 2026)

        assert len(summary.processed) == 1
        entry = summary.processed[0]
        assert (entry.emp_id, entry.original, entry.carried) == (EMPLOYEE_ID, 45, 20)

        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available == 20
        assert balance.earned_encashable_available == 60
        assert await _count(CarryLog, emp_id=EMPLOYEE_ID, year=2026) == 1

    async def test_under_cap_unchanged(self, db):
        await seed_balance(db, EMPLOYEE_ID, earned_non_encashable_available=12)

        summary = await run_annual_carry_forward(TestSessionFactory, 2026)

        assert summary.processed[0].carried == 12
        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available == 12

    async def test_negative_balance_carries_zero(self, db):
        await seed_balance(db, EMPLOYEE_ID, earned_non_encashable_available=-3)
        summary = await run_annual_carry_forward(TestSessionFactory, 2026)
        assert summary.processed[0].carried == 0

    async def test_once_per_year(self, db):
        await seed_balance(db, EMPLOYEE_ID, earned_non_encashable_available=45)

        await run_annual_carry_forward(TestSessionFactory, 2026)
        second = await run_annual_carry_forward(TestSessionFactory, 2026)

        assert second.processed == []
        assert second.skipped == [EMPLOYEE_ID]
        assert await _count(CarryLog, emp_id=EMPLOYEE_ID) == 1

    async def test_next_year_runs_again(self, db):
        await seed_balance(db, EMPLOYEE_ID, earned_non_encashable_available=45)

        await run_annual_carry_forward(TestSessionFactory, 2025)
        summary = await run_annual_carry_forward(TestSessionFactory, 2026)

        assert summary.processed[0].original == 20
        assert await _count(CarryLog, emp_id=EMPLOYEE_ID) == 2


# ═════════════════════════════════════════════════════════════════════
# Cap enforcement / casual reset
# ═════════════════════════════════════════════════════════════════════


class TestCapAndReset:

    async def test_enforce_combined_cap(self, db):
        await seed_balance(
            db, EMPLOYEE_ID,
            earned_non_encashable_available=300,
            earned_encashable_available=100,
        )
        await seed_balance(
            db, OTHER_EMPLOYEE_ID,
            earned_non_encashable_available=100,
            earned_encashable_available=100,
        )

        summary = await enforce_combined_cap(TestSessionFactory)

        assert summary.cap == 365
        assert [a.emp_id for a in summary.adjusted] == [EMPLOYEE_ID]
        adjusted = summary.adjusted[0]
        assert adjusted.non_encashable_after == 265
        assert adjusted.encashable_after == 100

        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available + balance.earned_encashable_available == 365
        untouched = await fetch_balance(OTHER_EMPLOYEE_ID)
        assert untouched.earned_non_encashable_available == 100

    async def test_enforce_cap_reads_negative_buckets_as_zero(self, db):
        await seed_balance(
            db, EMPLOYEE_ID,
            earned_non_encashable_available=-10,
            earned_encashable_available=400,
        )
        # stored sum is 300, reported sum is 400
        await seed_balance(
            db, OTHER_EMPLOYEE_ID,
            earned_non_encashable_available=-100,
            earned_encashable_available=400,
        )

        summary = await enforce_combined_cap(TestSessionFactory)

        assert [a.emp_id for a in summary.adjusted] == [EMPLOYEE_ID, OTHER_EMPLOYEE_ID]
        for emp_id in (EMPLOYEE_ID, OTHER_EMPLOYEE_ID):
            balance = await fetch_balance(emp_id)
            assert balance.earned_non_encashable_available == 0
            assert balance.earned_encashable_available == 365
            assert await _reported_earned_total(emp_id) == 365

    async def test_reset_casual_leave(self, db):
        await seed_balance(db, EMPLOYEE_ID, casual_available=3, casual_approved=17)
        await seed_balance(db, OTHER_EMPLOYEE_ID, casual_available=25)

        summary = await reset_casual_leave(TestSessionFactory)

        assert summary.entitlement == 20
        assert summary.updated == 2
        first = await fetch_balance(EMPLOYEE_ID)
        assert first.casual_available == 20
        assert first.casual_approved == 17
        assert (await fetch_balance(OTHER_EMPLOYEE_ID)).casual_available == 20


# ═════════════════════════════════════════════════════════════════════
# HR trigger endpoints
# ═════════════════════════════════════════════════════════════════════


class TestAccrualAPI:

    async def test_hr_triggers_monthly_accrual(self, client, db, hr_headers):
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))

        resp = await client.post(
            "/api/v1/leave/accrual/run",
            json={"year": 2025, "month": 3},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["eligible"] == 1
        assert data["credited"] == [{"emp_id": EMPLOYEE_ID, "non_encashable": 2, "encashable": 2}]

        again = await client.post(
            "/api/v1/leave/accrual/run",
            json={"year": 2025, "month": 3},
            headers=hr_headers,
        )
        assert again.json()["already_logged"] == [EMPLOYEE_ID]

    async def test_employee_cannot_trigger(self, client, employee_headers):
        resp = await client.post(
            "/api/v1/leave/accrual/run",
            json={"year": 2025, "month": 3},
            headers=employee_headers,
        )
        assert resp.status_code == 403

    async def test_invalid_month(self, client, hr_headers):
        resp = await client.post(
            "/api/v1/leave/accrual/run",
            json={"year": 2025, "month": 13},
            headers=hr_headers,
        )
        assert resp.status_code == 422

    async def test_carry_forward_and_cap_endpoints(self, client, db, hr_headers):
        await seed_balance(
            db, EMPLOYEE_ID,
            earned_non_encashable_available=45,
            earned_encashable_available=400,
        )

        carry = await client.post(
            "/api/v1/leave/accrual/carry-forward",
            json={"year": 2026},
            headers=hr_headers,
        )
        assert carry.status_code == 200
        assert carry.json()["processed"][0]["carried"] == 20

        cap = await client.post("/api/v1/leave/accrual/enforce-cap", headers=hr_headers)
        assert cap.status_code == 200
        assert cap.json()["adjusted"][0]["encashable_after"] == 365

        balance = await fetch_balance(EMPLOYEE_ID)
        assert balance.earned_non_encashable_available == 0
        assert balance.earned_encashable_available == 365


# ═════════════════════════════════════════════════════════════════════
# Scheduled job runner
# ═════════════════════════════════════════════════════════════════════


class TestJobRunner:

    def test_previous_month(self):
        assert previous_month(date(2026, 1, 15)) == (2025, 12)
        assert previous_month(date(2025, 4, 1)) == (2025, 3)

    async def test_monthly_defaults_to_previous_month(self, db):
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))

        args = build_parser().parse_args(["monthly-accrual"])
        summary = await run(args, TestSessionFactory, today=date(2025, 4, 1))

        assert (summary.year, summary.month) == (2025, 3)
        assert [c.emp_id for c in summary.credited] == [EMPLOYEE_ID]

    async def test_explicit_month_and_employee(self, db):
        await seed_timecards(db, EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))
        await seed_timecards(db, OTHER_EMPLOYEE_ID, weekdays_in_month(2025, 3, 20))

        args = build_parser().parse_args(
            ["monthly-accrual", "--year", "2025", "--month", "3", "--employee", str(EMPLOYEE_ID)]
        )
        summary = await run(args, TestSessionFactory)

        assert [c.emp_id for c in summary.credited] == [EMPLOYEE_ID]

    async def test_reset_casual_command(self, db):
        await seed_balance(db, EMPLOYEE_ID, casual_available=1)

        args = build_parser().parse_args(["reset-casual"])
        summary = await run(args, TestSessionFactory)

        assert summary.updated == 1
        assert (await fetch_balance(EMPLOYEE_ID)).casual_available == 20
