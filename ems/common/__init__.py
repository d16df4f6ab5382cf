"""Common module — shared utilities for the Employee Management System."""

from ems.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    TIME_FORMAT,
    LeaveErrorCode,
    LeaveStatus,
    UserRole,
)
from ems.common.exceptions import (
    AppException,
    ForbiddenException,
    LeaveRuleError,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from ems.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Constants / Enums
    "LeaveErrorCode",
    "LeaveStatus",
    "UserRole",
    "TIME_FORMAT",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ForbiddenException",
    "LeaveRuleError",
    "NotFoundException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
