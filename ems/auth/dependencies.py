"""Auth dependencies — JWT validation, role enforcement."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ems.auth.models import UserAccount, UserSession
from ems.auth.service import hash_token
from ems.common.constants import UserRole
from ems.common.exceptions import ForbiddenException, UnauthorizedException
from ems.config import settings
from ems.database import get_db


def extract_token(request: Request) -> Optional[str]:
    """Bearer header first, then the auth cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> UserAccount:
    """Validate JWT, verify the session is live, return the UserAccount."""
    token = extract_token(request)
    if not token:
        raise UnauthorizedException("Unauthorized")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedException("Token has expired.")
    except JWTError:
        raise UnauthorizedException("Invalid token.")

    if payload.get("type") != "access":
        raise UnauthorizedException("Invalid token type.")

    # Session exists, not revoked, not expired
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise UnauthorizedException("Session invalid or expired.")

    try:
        account_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise UnauthorizedException("Invalid token.")

    account = (
        await db.execute(
            select(UserAccount).where(
                UserAccount.id == account_id, UserAccount.is_active.is_(True),
            ),
        )
    ).scalars().first()
    if account is None:
        raise UnauthorizedException("User account is inactive or not found.")

    request.state.user_role = account.role
    request.state.token = token
    return account


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership."""

    async def _check(account: UserAccount = Depends(get_current_user)) -> UserAccount:
        if account.role not in allowed_roles:
            raise ForbiddenException(
                detail=f"Role '{account.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return account

    return _check


def ensure_self_or_hr(account: UserAccount, emp_id: int) -> None:
    """Employees may only touch their own records; HR may touch anyone's."""
    if account.role != UserRole.hr and account.emp_id != emp_id:
        raise ForbiddenException()
