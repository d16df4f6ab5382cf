"""Auth Pydantic schemas for request / response validation."""

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ems.common.constants import UserRole


# ── Requests ────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    role: UserRole
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return v.strip().lower()


# ── Responses ───────────────────────────────────────────────────────

class UserInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    emp_id: int
    role: UserRole
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    email: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class MeResponse(BaseModel):
    user: UserInfo
