"""Attendance service layer — timecard reads and accrual eligibility.

Business logic:
  - Daily timecard rows for an employee (``present`` derived from clock-in)
  - Present-day counting for the monthly earned-leave accrual: a day counts
    when ``present`` is true, or when it is NULL on a Saturday/Sunday
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import and_, distinct, extract, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ems.attendance.schemas import DailyAttendanceResponse, TimecardRowResponse
from ems.common.constants import TIME_FORMAT
from ems.personnel.models import PersonnelEmployee, TimecardEntry

# extract('dow') numbering: Sunday = 0, Saturday = 6
_WEEKEND_DOW = (0, 6)


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    """``[first day, first day of next month)``."""
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def _present_clause():
    return or_(
        TimecardEntry.present.is_(True),
        and_(
            TimecardEntry.present.is_(None),
            extract("dow", TimecardEntry.att_date).in_(_WEEKEND_DOW),
        ),
    )


def _fmt_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime(TIME_FORMAT)


class AttendanceService:
    """Read-only access to the external timecard table."""

    @staticmethod
    async def resolve_employee_id(db: AsyncSession, given: int) -> int:
        """Canonical personnel id for *given*, which may be an id or an emp_code."""
        found = await db.scalar(
            select(PersonnelEmployee.id).where(PersonnelEmployee.id == given)
        )
        if found is not None:
            return found
        by_code = await db.scalar(
            select(PersonnelEmployee.id)
            .where(PersonnelEmployee.emp_code == str(given))
            .limit(1)
        )
        return by_code if by_code is not None else given

    @staticmethod
    async def get_daily(
        db: AsyncSession,
        emp_id: int,
        day: date,
    ) -> DailyAttendanceResponse:
        canonical_id = await AttendanceService.resolve_employee_id(db, emp_id)
        result = await db.execute(
            select(TimecardEntry)
            .where(TimecardEntry.emp_id == canonical_id, TimecardEntry.att_date == day)
            .order_by(TimecardEntry.check_in.asc())
        )
        rows = [
            TimecardRowResponse(
                id=r.id,
                att_date=r.att_date,
                weekday=r.weekday,
                check_in=_fmt_time(r.check_in),
                check_out=_fmt_time(r.check_out),
                clock_in=_fmt_time(r.clock_in),
                clock_out=_fmt_time(r.clock_out),
                break_in=_fmt_time(r.break_in),
                break_out=_fmt_time(r.break_out),
                present=r.clock_in is not None,
                full_attendance=bool(r.full_attendance),
            )
            for r in result.scalars().all()
        ]
        return DailyAttendanceResponse(emp_id=canonical_id, date=day, rows=rows)

    @staticmethod
    async def get_today(db: AsyncSession, emp_id: int) -> DailyAttendanceResponse:
        return await AttendanceService.get_daily(db, emp_id, date.today())

    # ── Accrual collaborator ────────────────────────────────────────

    @staticmethod
    async def present_days_count(
        db: AsyncSession,
        emp_id: int,
        year: int,
        month: int,
    ) -> int:
        """Distinct present days for the employee in the month."""
        start, end = _month_bounds(year, month)
        count = await db.scalar(
            select(func.count(distinct(TimecardEntry.att_date))).where(
                TimecardEntry.emp_id == emp_id,
                TimecardEntry.att_date >= start,
                TimecardEntry.att_date < end,
                _present_clause(),
            )
        )
        return count or 0

    @staticmethod
    async def eligible_for_accrual(
        db: AsyncSession,
        year: int,
        month: int,
        threshold: int,
        employee_id: Optional[int] = None,
    ) -> list[int]:
        """Employee ids with at least *threshold* present days in the month."""
        start, end = _month_bounds(year, month)
        query = (
            select(TimecardEntry.emp_id)
            .where(
                TimecardEntry.att_date >= start,
                TimecardEntry.att_date < end,
                _present_clause(),
            )
            .group_by(TimecardEntry.emp_id)
            .having(func.count(distinct(TimecardEntry.att_date)) >= threshold)
            .order_by(TimecardEntry.emp_id)
        )
        if employee_id is not None:
            query = query.where(TimecardEntry.emp_id == employee_id)
        result = await db.execute(query)
        return [row[0] for row in result.all()]
