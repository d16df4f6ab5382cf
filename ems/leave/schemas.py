"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out / *Summary     → response bodies (read)
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ems.common.constants import LeaveStatus
from ems.common.pagination import PaginationMeta
from ems.leave.buckets import LeaveBucket


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Body for POST /requests.

    Dates stay strings here so malformed values surface as the leave
    core's ``InvalidDates`` error rather than a schema error.
    ``attachment`` is a data URL or a bare base64 string.
    """

    emp_id: Optional[int] = None
    leave_type: str = Field(..., min_length=1, max_length=100)
    start_date: str = Field(..., min_length=1)
    end_date: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1, max_length=30)
    alternate_officer_name: str = Field(..., min_length=1, max_length=150)
    reason: str = Field(..., min_length=1)
    attachment: Optional[str] = None

    @field_validator("contact_number", "alternate_officer_name", "reason")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class LeaveDecisionRequest(BaseModel):
    """Body for PATCH /requests/{id}/status."""

    status: LeaveStatus
    hr_remarks: Optional[str] = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def _final_status(cls, v: LeaveStatus) -> LeaveStatus:
        if v == LeaveStatus.pending:
            raise ValueError("status must be 'approved' or 'rejected'")
        return v


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    emp_id: int
    leave_type: str
    start_date: date
    end_date: date
    total_days: Optional[int] = None
    status: LeaveStatus
    contact_number: Optional[str] = None
    alternate_officer: Optional[str] = None
    reason: Optional[str] = None
    has_attachment: bool = False
    attachment_content_type: Optional[str] = None
    hr_remarks: Optional[str] = None
    decided_by: Optional[int] = None
    decided_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LeaveRequestListResponse(BaseModel):
    data: list[LeaveRequestOut]
    meta: PaginationMeta


# ═════════════════════════════════════════════════════════════════════
# Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceEntry(BaseModel):
    bucket: LeaveBucket
    label: str
    available: int
    approved: int


class LeaveSummaryOut(BaseModel):
    emp_id: int
    balances: list[LeaveBalanceEntry]


class LeaveBalanceUpdate(BaseModel):
    """HR absolute overwrite of one bucket."""

    emp_id: int
    leave_type: str = Field(..., min_length=1)
    available: int = Field(..., ge=0)
    approved: int = Field(0, ge=0)


# ═════════════════════════════════════════════════════════════════════
# Accrual jobs
# ═════════════════════════════════════════════════════════════════════


class AccrualRunRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    employee_id: Optional[int] = None


class CarryForwardRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    employee_id: Optional[int] = None


class CarryForwardEntry(BaseModel):
    emp_id: int
    original: int
    carried: int


class CarryForwardSummary(BaseModel):
    year: int
    processed: list[CarryForwardEntry] = []
    skipped: list[int] = []
    failed: list[int] = []


class CapAdjustment(BaseModel):
    emp_id: int
    non_encashable_before: int
    encashable_before: int
    non_encashable_after: int
    encashable_after: int


class CapEnforcementSummary(BaseModel):
    cap: int
    adjusted: list[CapAdjustment] = []
    failed: list[int] = []


class AccrualCredit(BaseModel):
    emp_id: int
    non_encashable: int
    encashable: int


class AccrualRunSummary(BaseModel):
    year: int
    month: int
    eligible: int = 0
    credited: list[AccrualCredit] = []
    already_logged: list[int] = []
    yearly_limit_reached: list[int] = []
    failed: list[int] = []
    carry_forward: Optional[CarryForwardSummary] = None
    cap_enforcement: Optional[CapEnforcementSummary] = None


class CasualResetSummary(BaseModel):
    entitlement: int
    updated: int
