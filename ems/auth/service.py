"""Auth service — password login, JWT issue, session lifecycle."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ems.auth.models import UserAccount, UserSession
from ems.common.constants import UserRole
from ems.common.exceptions import ForbiddenException, UnauthorizedException
from ems.config import settings

logger = logging.getLogger(__name__)


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt comparison; a malformed stored hash never matches."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False


# ── Account lookup ──────────────────────────────────────────────────

async def get_account_by_email(db: AsyncSession, email: str) -> Optional[UserAccount]:
    result = await db.execute(
        select(UserAccount).where(UserAccount.email == email.strip().lower()),
    )
    return result.scalars().first()


async def authenticate(
    db: AsyncSession,
    email: str,
    password: str,
    role: UserRole,
) -> UserAccount:
    """Return the account for valid credentials of the requested role.

    Unknown or inactive account and wrong password → 401, role mismatch → 403.
    """
    account = await get_account_by_email(db, email)
    if account is None or not account.is_active:
        logger.info("Login failed for %s: unknown or inactive account", email)
        raise UnauthorizedException("Invalid credentials")
    if account.role != role:
        logger.info(
            "Login failed for %s: role mismatch (requested=%s)", email, role.value,
        )
        raise ForbiddenException("Role mismatch")
    if not verify_password(password, account.password_hash):
        logger.info("Login failed for %s: bad password", email)
        raise UnauthorizedException("Invalid credentials")
    return account


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(account: UserAccount) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(account.id),
        "emp_id": account.emp_id,
        "role": account.role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    account: UserAccount,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, int]:
    """Issue a JWT and persist its session.  Returns (token, expires_in)."""
    token, expires_in = create_access_token(account)
    db.add(
        UserSession(
            user_id=account.id,
            token_hash=hash_token(token),
            ip_address=ip,
            user_agent=user_agent,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )
    )
    await db.flush()
    logger.info("Session opened for emp=%s role=%s", account.emp_id, account.role.value)
    return token, expires_in


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()
