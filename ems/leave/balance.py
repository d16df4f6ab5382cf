"""Balance store access: day counting, balance reads and atomic deltas.

Every read hits the database; nothing here caches balances. Writes go
through ``apply_delta`` / ``set_balance`` which create the employee's
zero row on first use.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ems.common.constants import LeaveErrorCode
from ems.common.exceptions import LeaveRuleError
from ems.database import insert_ignore
from ems.leave.buckets import LeaveBucket, resolve_leave_type
from ems.leave.models import LeaveBalance

logger = logging.getLogger(__name__)


# ── Dates ───────────────────────────────────────────────────────────

def parse_leave_date(value: Any) -> date:
    """Coerce *value* to a calendar date.

    Accepts ``date``, ``datetime`` (aware values are converted to UTC
    before truncation) and ISO-8601 strings.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return parse_leave_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
    raise LeaveRuleError(LeaveErrorCode.invalid_dates, f"Invalid date: {value!r}.")


def compute_days(start: date, end: date) -> int:
    """Inclusive calendar-day count; 0 when *end* precedes *start*."""
    if end < start:
        return 0
    return (end - start).days + 1


# ── Reads ───────────────────────────────────────────────────────────

async def get_balance(
    db: AsyncSession,
    emp_id: int,
    *,
    for_update: bool = False,
) -> Optional[LeaveBalance]:
    query = select(LeaveBalance).where(LeaveBalance.emp_id == emp_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalars().first()


def bucket_available(balance: Optional[LeaveBalance], bucket: LeaveBucket) -> int:
    """Clamped available days; a missing row counts as zero."""
    if balance is None:
        return 0
    return max(0, getattr(balance, bucket.available_field) or 0)


def bucket_approved(balance: Optional[LeaveBalance], bucket: LeaveBucket) -> int:
    if balance is None:
        return 0
    return max(0, getattr(balance, bucket.approved_field) or 0)


async def available_for(db: AsyncSession, emp_id: int, label: str) -> Optional[int]:
    """Available days for *label*, or ``None`` when the label is unknown."""
    bucket = resolve_leave_type(label)
    if bucket is None:
        return None
    return bucket_available(await get_balance(db, emp_id), bucket)


async def get_summary(db: AsyncSession, emp_id: int) -> list[dict]:
    """Per-bucket ``{bucket, label, available, approved}`` for an employee."""
    balance = await get_balance(db, emp_id)
    return [
        {
            "bucket": bucket,
            "label": bucket.label,
            "available": bucket_available(balance, bucket),
            "approved": bucket_approved(balance, bucket),
        }
        for bucket in LeaveBucket
    ]


# ── Writes ──────────────────────────────────────────────────────────

async def ensure_balance_row(db: AsyncSession, emp_id: int) -> None:
    """Insert the all-zero row for *emp_id* unless one already exists."""
    await db.execute(insert_ignore(db, LeaveBalance, ["emp_id"], emp_id=emp_id))


async def apply_delta(
    db: AsyncSession,
    emp_id: int,
    bucket: LeaveBucket,
    d_available: int = 0,
    d_approved: int = 0,
) -> None:
    """Add the deltas to the employee's bucket counters in one UPDATE."""
    await ensure_balance_row(db, emp_id)
    available_col = getattr(LeaveBalance, bucket.available_field)
    approved_col = getattr(LeaveBalance, bucket.approved_field)
    await db.execute(
        update(LeaveBalance)
        .where(LeaveBalance.emp_id == emp_id)
        .values({
            available_col: available_col + d_available,
            approved_col: approved_col + d_approved,
        })
        .execution_options(synchronize_session=False)
    )
    logger.debug(
        "Balance delta emp=%s bucket=%s available%+d approved%+d",
        emp_id, bucket.value, d_available, d_approved,
    )


async def set_balance(
    db: AsyncSession,
    emp_id: int,
    label: str,
    available: int,
    approved: int,
) -> LeaveBucket:
    """Overwrite a bucket's counters with absolute values (HR adjustment)."""
    bucket = resolve_leave_type(label)
    if bucket is None:
        raise LeaveRuleError(
            LeaveErrorCode.unknown_leave_type, f"Unknown leave type '{label}'.",
        )
    await ensure_balance_row(db, emp_id)
    await db.execute(
        update(LeaveBalance)
        .where(LeaveBalance.emp_id == emp_id)
        .values({bucket.available_field: available, bucket.approved_field: approved})
        .execution_options(synchronize_session=False)
    )
    logger.info(
        "Balance set emp=%s bucket=%s available=%d approved=%d",
        emp_id, bucket.value, available, approved,
    )
    return bucket


def cap_earned_leave(non_encashable: int, encashable: int, cap: int) -> tuple[int, int]:
    """Bring ``non + enc`` down to *cap*, trimming non-encashable first.

    Negative stored counters count as zero. Returns the new
    ``(non_encashable, encashable)`` pair; totals at or under the cap come
    back unchanged. Overflow is discarded.
    """
    if max(non_encashable, 0) + max(encashable, 0) <= cap:
        return non_encashable, encashable
    non_encashable, encashable = max(non_encashable, 0), max(encashable, 0)
    excess = non_encashable + encashable - cap
    cut_non = min(non_encashable, excess)
    non_encashable -= cut_non
    excess -= cut_non
    if excess > 0:
        encashable -= min(encashable, excess)
    return non_encashable, encashable
