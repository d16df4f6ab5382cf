"""Profile service — read and partially update the caller's personnel record."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ems.common.constants import EDITABLE_PROFILE_FIELDS
from ems.common.exceptions import NotFoundException, ValidationException
from ems.personnel.models import PersonnelEmployee
from ems.profile.schemas import ProfileResponse, ProfileUpdate

logger = logging.getLogger(__name__)


class ProfileService:

    @staticmethod
    async def _load(db: AsyncSession, emp_id: int) -> PersonnelEmployee:
        result = await db.execute(
            select(PersonnelEmployee)
            .where(PersonnelEmployee.id == emp_id)
            .options(selectinload(PersonnelEmployee.company))
            .execution_options(populate_existing=True)
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Profile", emp_id)
        return employee

    @staticmethod
    def _to_response(employee: PersonnelEmployee) -> ProfileResponse:
        return ProfileResponse(
            id=employee.id,
            emp_code=employee.emp_code,
            first_name=employee.first_name,
            last_name=employee.last_name,
            email=employee.email,
            mobile=employee.mobile,
            contact_tel=employee.contact_tel,
            office_tel=employee.office_tel,
            address=employee.address,
            city=employee.city,
            birthday=employee.birthday,
            photo=employee.photo,
            company_id=employee.company_id,
            company_name=employee.company.company_name if employee.company else None,
        )

    @staticmethod
    async def get_profile(db: AsyncSession, emp_id: int) -> ProfileResponse:
        return ProfileService._to_response(await ProfileService._load(db, emp_id))

    @staticmethod
    async def update_profile(
        db: AsyncSession,
        emp_id: int,
        data: ProfileUpdate,
    ) -> ProfileResponse:
        """Apply the provided editable fields and stamp ``change_time``."""
        changes = {
            k: v
            for k, v in data.model_dump(exclude_unset=True).items()
            if k in EDITABLE_PROFILE_FIELDS
        }
        if not changes:
            raise ValidationException({"body": ["No editable fields provided."]})

        employee = await ProfileService._load(db, emp_id)
        for field, value in changes.items():
            setattr(employee, field, value)
        employee.change_time = datetime.now(timezone.utc).replace(tzinfo=None)
        await db.flush()

        logger.info("Profile %s updated: %s", emp_id, sorted(changes))
        return ProfileService._to_response(await ProfileService._load(db, emp_id))
