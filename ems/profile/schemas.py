"""Profile Pydantic schemas."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class ProfileResponse(BaseModel):
    id: int
    emp_code: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    contact_tel: Optional[str] = None
    office_tel: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    birthday: Optional[date] = None
    photo: Optional[str] = None
    company_id: Optional[int] = None
    company_name: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Editable subset; omitted fields are left unchanged."""

    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=50)
    mobile: Optional[str] = Field(None, max_length=20)
    contact_tel: Optional[str] = Field(None, max_length=20)
    office_tel: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=20)
    birthday: Optional[date] = None
    photo: Optional[str] = Field(None, max_length=200)
