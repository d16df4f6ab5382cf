"""Enums and constants for the Employee Management System."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    hr = "hr"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class LeaveErrorCode(str, enum.Enum):
    invalid_dates = "InvalidDates"
    end_before_start = "EndBeforeStart"
    unknown_leave_type = "UnknownLeaveType"
    insufficient_balance = "InsufficientBalance"
    remarks_required = "RemarksRequired"
    not_found = "NotFound"
    already_decided = "AlreadyDecided"


# ── Misc constants ──────────────────────────────────────────────────

TIME_FORMAT = "%H:%M:%S"
MAX_PAGE_SIZE = 200
DEFAULT_PAGE_SIZE = 50

# Profile columns an employee may edit on their personnel record
EDITABLE_PROFILE_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "email",
    "mobile",
    "contact_tel",
    "office_tel",
    "address",
    "city",
    "birthday",
    "photo",
)
