"""Leave ORM models: LeaveBalance, LeaveRequest, AccrualLog, CarryLog."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from ems.common.constants import LeaveStatus
from ems.database import Base


def _counter() -> Mapped[int]:
    return mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )


class LeaveBalance(Base):
    """One wide row per employee: ``<bucket>_available`` / ``<bucket>_approved``.

    Column prefixes match ``LeaveBucket`` values. Rows are created lazily
    and never deleted.
    """

    __tablename__ = "employee_leave_balances"

    emp_id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=False)

    casual_available: Mapped[int] = _counter()
    casual_approved: Mapped[int] = _counter()
    rest_recreation_available: Mapped[int] = _counter()
    rest_recreation_approved: Mapped[int] = _counter()
    leave_not_due_available: Mapped[int] = _counter()
    leave_not_due_approved: Mapped[int] = _counter()
    study_available: Mapped[int] = _counter()
    study_approved: Mapped[int] = _counter()
    ex_pakistan_available: Mapped[int] = _counter()
    ex_pakistan_approved: Mapped[int] = _counter()
    extra_ordinary_available: Mapped[int] = _counter()
    extra_ordinary_approved: Mapped[int] = _counter()
    disability_available: Mapped[int] = _counter()
    disability_approved: Mapped[int] = _counter()
    lpr_available: Mapped[int] = _counter()
    lpr_approved: Mapped[int] = _counter()
    medical_available: Mapped[int] = _counter()
    medical_approved: Mapped[int] = _counter()
    maternity_available: Mapped[int] = _counter()
    maternity_approved: Mapped[int] = _counter()
    paternity_available: Mapped[int] = _counter()
    paternity_approved: Mapped[int] = _counter()
    iddat_available: Mapped[int] = _counter()
    iddat_approved: Mapped[int] = _counter()
    hajj_available: Mapped[int] = _counter()
    hajj_approved: Mapped[int] = _counter()
    fatal_medical_emergency_available: Mapped[int] = _counter()
    fatal_medical_emergency_approved: Mapped[int] = _counter()
    earned_encashable_available: Mapped[int] = _counter()
    earned_encashable_approved: Mapped[int] = _counter()
    earned_non_encashable_available: Mapped[int] = _counter()
    earned_non_encashable_approved: Mapped[int] = _counter()

    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )


class LeaveRequest(Base):
    __tablename__ = "employee_leave_requests"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    emp_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    leave_type: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[Optional[int]] = mapped_column(sa.Integer)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", native_enum=False, length=16),
        nullable=False,
        default=LeaveStatus.pending,
        server_default=LeaveStatus.pending.value,
        index=True,
    )
    contact_number: Mapped[Optional[str]] = mapped_column(sa.String(30))
    alternate_officer: Mapped[Optional[str]] = mapped_column(sa.String(150))
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    attachment: Mapped[Optional[bytes]] = mapped_column(sa.LargeBinary, deferred=True)
    attachment_content_type: Mapped[Optional[str]] = mapped_column(sa.String(100))
    hr_remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    decided_by: Mapped[Optional[int]] = mapped_column(sa.Integer)
    decided_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )

    @property
    def has_attachment(self) -> bool:
        return self.attachment_content_type is not None


class AccrualLog(Base):
    """Idempotency fence for the monthly earned-leave credit."""

    __tablename__ = "employee_leave_accrual_log"
    __table_args__ = (
        sa.UniqueConstraint("emp_id", "year", "month", name="uq_accrual_emp_year_month"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    emp_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    month: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )


class CarryLog(Base):
    """Idempotency fence for the yearly carry-forward."""

    __tablename__ = "employee_leave_carry_log"
    __table_args__ = (
        sa.UniqueConstraint("emp_id", "year", name="uq_carry_emp_year"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    emp_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    carried: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, server_default=sa.text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
