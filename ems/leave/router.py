"""Leave router — requests, decisions, balance summary and accrual triggers.

All endpoints require authentication. Decisions, pending lists, balance
overwrites and accrual triggers are HR-only.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ems.auth.dependencies import ensure_self_or_hr, get_current_user, require_role
from ems.auth.models import UserAccount
from ems.common.constants import UserRole
from ems.common.pagination import PaginationParams
from ems.database import get_db, get_session_factory
from ems.leave import accrual
from ems.leave.balance import get_summary, set_balance
from ems.leave.schemas import (
    AccrualRunRequest,
    AccrualRunSummary,
    CapEnforcementSummary,
    CarryForwardRequest,
    CarryForwardSummary,
    LeaveBalanceUpdate,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestListResponse,
    LeaveRequestOut,
    LeaveSummaryOut,
)
from ems.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def create_leave_request(
    body: LeaveRequestCreate,
    account: UserAccount = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Validates dates, type and balance; stores it as pending."""
    emp_id = body.emp_id if body.emp_id is not None else account.emp_id
    ensure_self_or_hr(account, emp_id)
    return await LeaveService.create_request(db, emp_id, body)


# ── GET /requests/pending ───────────────────────────────────────────

@router.get("/requests/pending", response_model=LeaveRequestListResponse)
async def pending_requests(
    pagination: PaginationParams = Depends(),
    account: UserAccount = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.list_pending(db, pagination.page, pagination.page_size)


# ── GET /requests/by-employee ───────────────────────────────────────

@router.get("/requests/by-employee", response_model=LeaveRequestListResponse)
async def requests_by_employee(
    emp_id: Optional[int] = Query(None),
    pagination: PaginationParams = Depends(),
    account: UserAccount = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """An employee's requests, newest first (defaults to the caller)."""
    target = emp_id if emp_id is not None else account.emp_id
    ensure_self_or_hr(account, target)
    return await LeaveService.list_by_employee(
        db, target, pagination.page, pagination.page_size,
    )


# ── PATCH /requests/{id}/status ─────────────────────────────────────

@router.patch("/requests/{request_id}/status", response_model=LeaveRequestOut)
async def decide_leave_request(
    request_id: int,
    body: LeaveDecisionRequest,
    account: UserAccount = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """Approve (remarks required, deducts balance) or reject a pending request."""
    return await LeaveService.decide(
        db, request_id, body.status, body.hr_remarks, decided_by=account.emp_id,
    )


# ── GET /requests/{id}/attachment ───────────────────────────────────

@router.get("/requests/{request_id}/attachment")
async def download_attachment(
    request_id: int,
    account: UserAccount = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    owner_id, data, content_type = await LeaveService.get_attachment(db, request_id)
    ensure_self_or_hr(account, owner_id)
    return Response(
        content=data,
        media_type=content_type,
        headers={"Content-Disposition": f'inline; filename="leave-{request_id}"'},
    )


# ── GET /summary ────────────────────────────────────────────────────

@router.get("/summary", response_model=LeaveSummaryOut)
async def leave_summary(
    emp_id: Optional[int] = Query(None),
    account: UserAccount = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Available and approved days per leave type (defaults to the caller)."""
    target = emp_id if emp_id is not None else account.emp_id
    ensure_self_or_hr(account, target)
    return LeaveSummaryOut(emp_id=target, balances=await get_summary(db, target))


# ── PUT /summary ────────────────────────────────────────────────────

@router.put("/summary", response_model=LeaveSummaryOut)
async def update_leave_summary(
    body: LeaveBalanceUpdate,
    account: UserAccount = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """HR overwrite of one leave type's available / approved counters."""
    await set_balance(db, body.emp_id, body.leave_type, body.available, body.approved)
    return LeaveSummaryOut(emp_id=body.emp_id, balances=await get_summary(db, body.emp_id))


# ── Accrual triggers (HR) ───────────────────────────────────────────

@router.post("/accrual/run", response_model=AccrualRunSummary)
async def run_accrual(
    body: AccrualRunRequest,
    account: UserAccount = Depends(require_role(UserRole.hr)),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Monthly earned-leave accrual for (year, month); January carries forward first."""
    return await accrual.run_monthly_accrual(
        session_factory, body.year, body.month, employee_id=body.employee_id,
    )


@router.post("/accrual/carry-forward", response_model=CarryForwardSummary)
async def run_carry_forward(
    body: CarryForwardRequest,
    account: UserAccount = Depends(require_role(UserRole.hr)),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await accrual.run_annual_carry_forward(
        session_factory, body.year, employee_id=body.employee_id,
    )


@router.post("/accrual/enforce-cap", response_model=CapEnforcementSummary)
async def run_enforce_cap(
    account: UserAccount = Depends(require_role(UserRole.hr)),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await accrual.enforce_combined_cap(session_factory)
