"""Personnel and timecard tables owned by the attendance system.

These tables are read by the leave core and never created by our
migrations; the Profile module updates a safe subset of employee columns.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ems.database import Base


class PersonnelCompany(Base):
    __tablename__ = "personnel_company"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True)
    company_name: Mapped[Optional[str]] = mapped_column(sa.String(100))


class PersonnelEmployee(Base):
    __tablename__ = "personnel_employee"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True)
    emp_code: Mapped[Optional[str]] = mapped_column(sa.String(20), index=True)
    first_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    last_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    email: Mapped[Optional[str]] = mapped_column(sa.String(50))
    mobile: Mapped[Optional[str]] = mapped_column(sa.String(20))
    contact_tel: Mapped[Optional[str]] = mapped_column(sa.String(20))
    office_tel: Mapped[Optional[str]] = mapped_column(sa.String(20))
    address: Mapped[Optional[str]] = mapped_column(sa.String(200))
    city: Mapped[Optional[str]] = mapped_column(sa.String(20))
    birthday: Mapped[Optional[date]] = mapped_column(sa.Date)
    photo: Mapped[Optional[str]] = mapped_column(sa.String(200))
    company_id: Mapped[Optional[int]] = mapped_column(
        sa.Integer, sa.ForeignKey("personnel_company.id")
    )
    change_time: Mapped[Optional[datetime]] = mapped_column(sa.DateTime)

    # Relationships
    company: Mapped[Optional[PersonnelCompany]] = relationship()


class TimecardEntry(Base):
    """One row per employee per attendance day (``att_payloadtimecard``).

    ``present`` is NULL on days the device never evaluated, typically
    weekends.
    """

    __tablename__ = "att_payloadtimecard"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True)
    emp_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    att_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    weekday: Mapped[Optional[int]] = mapped_column(sa.Integer)
    check_in: Mapped[Optional[datetime]] = mapped_column(sa.DateTime)
    check_out: Mapped[Optional[datetime]] = mapped_column(sa.DateTime)
    clock_in: Mapped[Optional[datetime]] = mapped_column(sa.DateTime)
    clock_out: Mapped[Optional[datetime]] = mapped_column(sa.DateTime)
    break_in: Mapped[Optional[datetime]] = mapped_column(sa.DateTime)
    break_out: Mapped[Optional[datetime]] = mapped_column(sa.DateTime)
    present: Mapped[Optional[bool]] = mapped_column(sa.Boolean)
    full_attendance: Mapped[Optional[bool]] = mapped_column(sa.Boolean)
