"""Auth router — password login, logout, current user."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ems.auth.dependencies import get_current_user
from ems.auth.models import UserAccount
from ems.auth.schemas import LoginRequest, LoginResponse, MeResponse, UserInfo
from ems.auth.service import authenticate, create_session, hash_token, revoke_session
from ems.common.exceptions import AppException
from ems.common.rate_limit import LOGIN_RATE_LIMIT, limiter
from ems.config import settings
from ems.database import get_db

router = APIRouter(prefix="", tags=["auth"])


# ── POST /login ─────────────────────────────────────────────────────

@router.post("/login", response_model=LoginResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Verify email/password for the chosen role and open a session.

    The token is returned in the body and set as an httpOnly cookie.
    """
    account = await authenticate(db, body.email, body.password, body.role)

    ip = request.client.host if request.client else None
    token, expires_in = await create_session(
        db, account, ip, request.headers.get("user-agent"),
    )
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=expires_in,
    )
    return LoginResponse(
        access_token=token,
        expires_in=expires_in,
        user=UserInfo.model_validate(account),
    )


# ── POST /register — disabled ───────────────────────────────────────

@router.post("/register", status_code=501)
async def register():
    raise AppException(
        status_code=501,
        error_type="not-implemented",
        title="Registration Disabled",
        detail="Accounts are provisioned from the personnel system.",
    )


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    account: UserAccount = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await revoke_session(db, hash_token(request.state.token))
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return {"message": "Logged out"}


# ── GET /me — Current user ──────────────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(account: UserAccount = Depends(get_current_user)):
    return MeResponse(user=UserInfo.model_validate(account))
