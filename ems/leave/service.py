"""Leave service layer — request ledger, validation and approval workflow.

Business logic:
  - Create: parse dates, count days, resolve leave type, check balance,
    persist as pending (no balance change)
  - Decide: one-way pending → approved / rejected; approval re-checks the
    balance under a row lock and moves days available → approved in the
    same transaction as the status change
  - Ledger queries: pending list, per-employee list, attachment download
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from ems.common.constants import LeaveErrorCode, LeaveStatus
from ems.common.exceptions import LeaveRuleError, NotFoundException, ValidationException
from ems.common.pagination import paginate
from ems.config import settings
from ems.leave.balance import (
    apply_delta,
    available_for,
    bucket_available,
    compute_days,
    get_balance,
    parse_leave_date,
)
from ems.leave.buckets import resolve_leave_type
from ems.leave.models import LeaveRequest
from ems.leave.schemas import LeaveRequestCreate, LeaveRequestListResponse, LeaveRequestOut

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=.-]+)*;base64,(?P<data>.*)$", re.S)
_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def decode_attachment(raw: str) -> tuple[bytes, str]:
    """Decode a data URL or bare base64 string into ``(bytes, content_type)``."""
    content_type = _DEFAULT_CONTENT_TYPE
    payload = raw.strip()
    match = _DATA_URL_RE.match(payload)
    if match:
        content_type = match.group("mime") or _DEFAULT_CONTENT_TYPE
        payload = match.group("data")
    try:
        data = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationException({"attachment": ["Attachment is not valid base64."]})
    if not data:
        raise ValidationException({"attachment": ["Attachment is empty."]})

    limit = settings.MAX_ATTACHMENT_SIZE_MB * 1024 * 1024
    if len(data) > limit:
        raise ValidationException(
            {"attachment": [f"Attachment exceeds {settings.MAX_ATTACHMENT_SIZE_MB} MB."]}
        )
    return data, content_type


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave request operations: create, decide, list, attachment."""

    # ─────────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_request(
        db: AsyncSession,
        emp_id: int,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """Validate and store a pending request. Balances are not touched."""

        start = parse_leave_date(data.start_date)
        end = parse_leave_date(data.end_date)
        if end < start:
            raise LeaveRuleError(
                LeaveErrorCode.end_before_start, "End date cannot be before start date.",
            )

        days = compute_days(start, end)
        available = await available_for(db, emp_id, data.leave_type)
        if days <= 0 or available is None:
            raise LeaveRuleError(
                LeaveErrorCode.unknown_leave_type,
                f"Unknown leave type '{data.leave_type}'.",
            )
        if available < days:
            raise LeaveRuleError(
                LeaveErrorCode.insufficient_balance,
                "Insufficient leave balance.",
                available=available,
                requested=days,
            )

        attachment: Optional[bytes] = None
        content_type: Optional[str] = None
        if data.attachment:
            attachment, content_type = decode_attachment(data.attachment)

        leave_request = LeaveRequest(
            emp_id=emp_id,
            leave_type=data.leave_type,
            start_date=start,
            end_date=end,
            total_days=days,
            status=LeaveStatus.pending,
            contact_number=data.contact_number,
            alternate_officer=data.alternate_officer_name,
            reason=data.reason,
            attachment=attachment,
            attachment_content_type=content_type,
        )
        db.add(leave_request)
        await db.flush()
        await db.refresh(leave_request)

        logger.info(
            "Leave request %s created emp=%s type=%r days=%d",
            leave_request.id, emp_id, data.leave_type, days,
        )
        return LeaveRequestOut.model_validate(leave_request)

    # ─────────────────────────────────────────────────────────────────
    # Decide
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def decide(
        db: AsyncSession,
        request_id: int,
        status: LeaveStatus,
        hr_remarks: Optional[str],
        decided_by: Optional[int] = None,
    ) -> LeaveRequestOut:
        """Approve or reject a pending request.

        Approval locks the request and the employee's balance row, re-checks
        the balance, then moves ``total_days`` from available to approved.
        Status and balance change commit or roll back together.
        """

        if status == LeaveStatus.pending:
            raise ValidationException({"status": ["Status must be 'approved' or 'rejected'."]})

        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)

        if leave_req.status != LeaveStatus.pending:
            raise LeaveRuleError(
                LeaveErrorCode.already_decided,
                f"Leave request is already {leave_req.status.value}.",
            )

        remarks = hr_remarks.strip() if hr_remarks else None
        now = datetime.now(timezone.utc)

        if status == LeaveStatus.approved:
            if not remarks:
                raise LeaveRuleError(
                    LeaveErrorCode.remarks_required, "HR remarks are required to approve.",
                )

            days = leave_req.total_days
            if days is None:
                days = compute_days(leave_req.start_date, leave_req.end_date)

            bucket = resolve_leave_type(leave_req.leave_type)
            if bucket is None or days <= 0:
                raise LeaveRuleError(
                    LeaveErrorCode.unknown_leave_type,
                    f"Unknown leave type '{leave_req.leave_type}'.",
                )

            balance = await get_balance(db, leave_req.emp_id, for_update=True)
            available = bucket_available(balance, bucket)
            if available < days:
                raise LeaveRuleError(
                    LeaveErrorCode.insufficient_balance,
                    "Insufficient leave balance.",
                    available=available,
                    requested=days,
                )

            leave_req.total_days = days
            await apply_delta(db, leave_req.emp_id, bucket, -days, days)

        leave_req.status = status
        leave_req.hr_remarks = remarks
        leave_req.decided_by = decided_by
        leave_req.decided_at = now
        leave_req.updated_at = now
        await db.flush()

        logger.info(
            "Leave request %s %s by %s", leave_req.id, status.value, decided_by,
        )
        return LeaveRequestOut.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def list_pending(
        db: AsyncSession,
        page: int = 1,
        page_size: int = 50,
    ) -> LeaveRequestListResponse:
        """Pending requests across all employees, newest first."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.status == LeaveStatus.pending)
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
        )
        result = await paginate(
            db, query, page, page_size, mapper=LeaveRequestOut.model_validate,
        )
        return LeaveRequestListResponse(data=result.data, meta=result.meta)

    @staticmethod
    async def list_by_employee(
        db: AsyncSession,
        emp_id: int,
        page: int = 1,
        page_size: int = 50,
    ) -> LeaveRequestListResponse:
        """All of an employee's requests, newest first."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.emp_id == emp_id)
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
        )
        result = await paginate(
            db, query, page, page_size, mapper=LeaveRequestOut.model_validate,
        )
        return LeaveRequestListResponse(data=result.data, meta=result.meta)

    @staticmethod
    async def get_attachment(
        db: AsyncSession,
        request_id: int,
    ) -> tuple[int, bytes, str]:
        """Return ``(emp_id, bytes, content_type)`` of a request's attachment."""
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(undefer(LeaveRequest.attachment))
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)
        if not leave_req.attachment:
            raise NotFoundException("Attachment", request_id)
        return (
            leave_req.emp_id,
            leave_req.attachment,
            leave_req.attachment_content_type or _DEFAULT_CONTENT_TYPE,
        )
