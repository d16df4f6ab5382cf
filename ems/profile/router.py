"""Profile router — the caller's own personnel record."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ems.auth.dependencies import get_current_user
from ems.auth.models import UserAccount
from ems.database import get_db
from ems.profile.schemas import ProfileResponse, ProfileUpdate
from ems.profile.service import ProfileService

router = APIRouter(prefix="", tags=["profile"])


@router.get("", response_model=ProfileResponse)
async def get_profile(
    account: UserAccount = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ProfileService.get_profile(db, account.emp_id)


@router.put("", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    account: UserAccount = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update any subset of the editable profile fields."""
    return await ProfileService.update_profile(db, account.emp_id, body)
