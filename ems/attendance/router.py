"""Attendance router — daily timecard rows."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ems.attendance.schemas import DailyAttendanceResponse
from ems.attendance.service import AttendanceService
from ems.auth.dependencies import ensure_self_or_hr, get_current_user
from ems.auth.models import UserAccount
from ems.database import get_db

router = APIRouter(prefix="", tags=["attendance"])


@router.get("/daily", response_model=DailyAttendanceResponse)
async def daily_attendance(
    emp_id: int = Query(...),
    day: Optional[date] = Query(None, alias="date"),
    account: UserAccount = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Timecard rows for an employee on a day (default today). HR may query anyone."""
    ensure_self_or_hr(account, emp_id)
    return await AttendanceService.get_daily(db, emp_id, day or date.today())


@router.get("/today", response_model=DailyAttendanceResponse)
async def today_attendance(
    account: UserAccount = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_today(db, account.emp_id)
