"""Earned-leave accrual, carry-forward, cap enforcement and casual reset.

Each job receives an ``async_sessionmaker`` and opens one transaction per
employee: a failure rolls back that employee only and the run continues.
Idempotency rests on the unique keys of the accrual and carry logs; the
log row is claimed with ``INSERT ... ON CONFLICT DO NOTHING`` in the same
transaction as the balance change, so a re-run or a concurrent run can
never credit twice.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ems.attendance.service import AttendanceService
from ems.config import settings
from ems.database import insert_ignore
from ems.leave.balance import apply_delta, cap_earned_leave, get_balance
from ems.leave.buckets import LeaveBucket
from ems.leave.models import AccrualLog, CarryLog, LeaveBalance
from ems.leave.schemas import (
    AccrualCredit,
    AccrualRunSummary,
    CapAdjustment,
    CapEnforcementSummary,
    CarryForwardEntry,
    CarryForwardSummary,
    CasualResetSummary,
)

logger = logging.getLogger(__name__)

_NON = LeaveBucket.earned_non_encashable
_ENC = LeaveBucket.earned_encashable

_ALREADY_LOGGED = "already_logged"
_YEARLY_LIMIT = "yearly_limit"


# ── Shared helpers ──────────────────────────────────────────────────

def _clamped(column):
    return case((column > 0, column), else_=0)


async def _apply_cap(db: AsyncSession, emp_id: int, cap: int) -> Optional[CapAdjustment]:
    """Lock the employee's row and trim earned leave to *cap* if above it."""
    balance = await get_balance(db, emp_id, for_update=True)
    if balance is None:
        return None
    non_before = balance.earned_non_encashable_available
    enc_before = balance.earned_encashable_available
    non_after, enc_after = cap_earned_leave(non_before, enc_before, cap)
    if (non_after, enc_after) == (non_before, enc_before):
        return None

    await db.execute(
        update(LeaveBalance)
        .where(LeaveBalance.emp_id == emp_id)
        .values(
            earned_non_encashable_available=non_after,
            earned_encashable_available=enc_after,
        )
        .execution_options(synchronize_session=False)
    )
    return CapAdjustment(
        emp_id=emp_id,
        non_encashable_before=non_before,
        encashable_before=enc_before,
        non_encashable_after=non_after,
        encashable_after=enc_after,
    )


# ── Carry-forward ───────────────────────────────────────────────────

async def _carry_forward_employee(
    db: AsyncSession,
    emp_id: int,
    year: int,
    cap: int,
) -> Optional[CarryForwardEntry]:
    balance = await get_balance(db, emp_id, for_update=True)
    original = balance.earned_non_encashable_available if balance else 0
    carried = max(0, min(cap, original))

    claim = await db.execute(
        insert_ignore(db, CarryLog, ["emp_id", "year"], emp_id=emp_id, year=year, carried=carried)
    )
    if claim.first() is None:
        return None

    if original > cap:
        await db.execute(
            update(LeaveBalance)
            .where(LeaveBalance.emp_id == emp_id)
            .values(earned_non_encashable_available=cap)
            .execution_options(synchronize_session=False)
        )
    return CarryForwardEntry(emp_id=emp_id, original=original, carried=carried)


async def run_annual_carry_forward(
    session_factory: async_sessionmaker[AsyncSession],
    year: int,
    employee_id: Optional[int] = None,
    cap: Optional[int] = None,
) -> CarryForwardSummary:
    """Cap each employee's non-encashable earned leave at the carry limit, once per year."""
    cap = settings.EL_CARRY_FORWARD_CAP if cap is None else cap
    summary = CarryForwardSummary(year=year)

    async with session_factory() as db:
        query = select(LeaveBalance.emp_id).order_by(LeaveBalance.emp_id)
        if employee_id is not None:
            query = query.where(LeaveBalance.emp_id == employee_id)
        emp_ids = list((await db.execute(query)).scalars().all())

    for emp_id in emp_ids:
        try:
            async with session_factory() as db:
                async with db.begin():
                    entry = await _carry_forward_employee(db, emp_id, year, cap)
        except Exception:
            logger.exception("Carry-forward failed for emp=%s year=%s", emp_id, year)
            summary.failed.append(emp_id)
            continue

        if entry is None:
            summary.skipped.append(emp_id)
        else:
            summary.processed.append(entry)

    logger.info(
        "Carry-forward %s: processed=%d skipped=%d failed=%d",
        year, len(summary.processed), len(summary.skipped), len(summary.failed),
    )
    return summary


# ── Monthly accrual ─────────────────────────────────────────────────

async def _accrual_logged(db: AsyncSession, emp_id: int, year: int, month: int) -> bool:
    found = await db.scalar(
        select(AccrualLog.id).where(
            AccrualLog.emp_id == emp_id,
            AccrualLog.year == year,
            AccrualLog.month == month,
        )
    )
    return found is not None


async def _accrue_employee(
    db: AsyncSession,
    emp_id: int,
    year: int,
    month: int,
) -> AccrualCredit | str:
    if await _accrual_logged(db, emp_id, year, month):
        return _ALREADY_LOGGED

    this_year = await db.scalar(
        select(func.count()).select_from(AccrualLog).where(
            AccrualLog.emp_id == emp_id, AccrualLog.year == year,
        )
    )
    if (this_year or 0) >= settings.MAX_ACCRUALS_PER_YEAR:
        return _YEARLY_LIMIT

    claim = await db.execute(
        insert_ignore(
            db, AccrualLog, ["emp_id", "year", "month"],
            emp_id=emp_id, year=year, month=month,
        )
    )
    if claim.first() is None:
        return _ALREADY_LOGGED

    await apply_delta(db, emp_id, _NON, settings.EL_MONTHLY_INCREMENT_NON)
    await apply_delta(db, emp_id, _ENC, settings.EL_MONTHLY_INCREMENT_ENC)
    adjustment = await _apply_cap(db, emp_id, settings.EL_TOTAL_CAP)

    credit_non = settings.EL_MONTHLY_INCREMENT_NON
    credit_enc = settings.EL_MONTHLY_INCREMENT_ENC
    if adjustment is not None:
        credit_non -= max(adjustment.non_encashable_before, 0) - adjustment.non_encashable_after
        credit_enc -= max(adjustment.encashable_before, 0) - adjustment.encashable_after
    return AccrualCredit(emp_id=emp_id, non_encashable=credit_non, encashable=credit_enc)


async def run_monthly_accrual(
    session_factory: async_sessionmaker[AsyncSession],
    year: int,
    month: int,
    employee_id: Optional[int] = None,
) -> AccrualRunSummary:
    """Credit earned leave for employees with enough present days in (year, month).

    January runs the year's carry-forward first so the accrued days land
    on an already-capped balance. The run ends with a combined-cap sweep
    so no balance in scope is left above the cap, credited or not.
    """
    summary = AccrualRunSummary(year=year, month=month)

    if month == 1:
        summary.carry_forward = await run_annual_carry_forward(
            session_factory, year, employee_id=employee_id,
        )

    async with session_factory() as db:
        eligible = await AttendanceService.eligible_for_accrual(
            db, year, month, settings.ACCRUAL_PRESENT_THRESHOLD, employee_id=employee_id,
        )
    summary.eligible = len(eligible)

    for emp_id in eligible:
        try:
            async with session_factory() as db:
                async with db.begin():
                    outcome = await _accrue_employee(db, emp_id, year, month)
        except Exception:
            logger.exception("Accrual failed for emp=%s %04d-%02d", emp_id, year, month)
            summary.failed.append(emp_id)
            continue

        if outcome == _ALREADY_LOGGED:
            summary.already_logged.append(emp_id)
        elif outcome == _YEARLY_LIMIT:
            summary.yearly_limit_reached.append(emp_id)
        else:
            summary.credited.append(outcome)

    summary.cap_enforcement = await enforce_combined_cap(
        session_factory, employee_id=employee_id,
    )

    logger.info(
        "Accrual %04d-%02d: eligible=%d credited=%d already_logged=%d limit=%d failed=%d",
        year, month, summary.eligible, len(summary.credited),
        len(summary.already_logged), len(summary.yearly_limit_reached), len(summary.failed),
    )
    return summary


# ── Cap enforcement ─────────────────────────────────────────────────

async def enforce_combined_cap(
    session_factory: async_sessionmaker[AsyncSession],
    cap: Optional[int] = None,
    employee_id: Optional[int] = None,
) -> CapEnforcementSummary:
    """Trim every balance whose combined earned leave exceeds the cap.

    Negative counters count as zero, matching what the summary reports.
    """
    cap = settings.EL_TOTAL_CAP if cap is None else cap
    summary = CapEnforcementSummary(cap=cap)

    async with session_factory() as db:
        query = (
            select(LeaveBalance.emp_id)
            .where(
                _clamped(LeaveBalance.earned_non_encashable_available)
                + _clamped(LeaveBalance.earned_encashable_available)
                > cap
            )
            .order_by(LeaveBalance.emp_id)
        )
        if employee_id is not None:
            query = query.where(LeaveBalance.emp_id == employee_id)
        result = await db.execute(query)
        emp_ids = list(result.scalars().all())

    for emp_id in emp_ids:
        try:
            async with session_factory() as db:
                async with db.begin():
                    adjustment = await _apply_cap(db, emp_id, cap)
        except Exception:
            logger.exception("Cap enforcement failed for emp=%s", emp_id)
            summary.failed.append(emp_id)
            continue
        if adjustment is not None:
            summary.adjusted.append(adjustment)

    logger.info("Cap enforcement (%d): adjusted=%d failed=%d", cap, len(summary.adjusted), len(summary.failed))
    return summary


# ── Casual leave reset ──────────────────────────────────────────────

async def reset_casual_leave(
    session_factory: async_sessionmaker[AsyncSession],
    entitlement: Optional[int] = None,
) -> CasualResetSummary:
    """Set every employee's casual ``available`` to the yearly entitlement."""
    entitlement = settings.CL_YEARLY_ENTITLEMENT if entitlement is None else entitlement
    async with session_factory() as db:
        async with db.begin():
            result = await db.execute(
                update(LeaveBalance)
                .values(casual_available=entitlement)
                .execution_options(synchronize_session=False)
            )
    logger.info("Casual leave reset to %d for %d employees", entitlement, result.rowcount)
    return CasualResetSummary(entitlement=entitlement, updated=result.rowcount)
