"""Attendance Pydantic v2 schemas — timecard read models."""

from datetime import date
from typing import Optional

from pydantic import BaseModel


class TimecardRowResponse(BaseModel):
    """One timecard row with times rendered as HH:MM:SS."""

    id: int
    att_date: date
    weekday: Optional[int] = None
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    clock_in: Optional[str] = None
    clock_out: Optional[str] = None
    break_in: Optional[str] = None
    break_out: Optional[str] = None
    present: bool
    full_attendance: bool


class DailyAttendanceResponse(BaseModel):
    emp_id: int
    date: date
    rows: list[TimecardRowResponse]
