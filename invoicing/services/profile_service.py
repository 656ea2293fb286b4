import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from invoicing.exceptions import PersistenceError, ProfileNotFound, ValidationError
from invoicing.models.user import User
from invoicing.schemas.profile import ProfileResponse
from invoicing.services.validation import is_valid_phone, normalize_phone

logger = structlog.get_logger()

PROFILE_FIELDS = ("business_name", "phone", "logo_url")


def to_profile(user: User) -> ProfileResponse:
    return ProfileResponse(
        id=str(user.id),
        email=user.email,
        business_name=user.business_name,
        phone=user.phone,
        logo_url=user.logo_url,
    )


class ProfileService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_user(self, user_id: str) -> User:
        try:
            result = await self.db.execute(
                select(User).where(User.id == uuid.UUID(str(user_id)), User.is_active == True)  # noqa: E712
            )
        except SQLAlchemyError as e:
            logger.error("profile_fetch_failed", user_id=str(user_id), error=str(e))
            raise PersistenceError("Error loading profile") from e
        user = result.scalar_one_or_none()
        if not user:
            raise ProfileNotFound("Profile not found")
        return user

    async def get_profile(self, user_id: str) -> ProfileResponse:
        return to_profile(await self._get_user(user_id))

    async def update_profile(self, user_id: str, **fields: Optional[str]) -> ProfileResponse:
        """Patch profile fields; a phone, when given, must pass the phone rule."""
        if "phone" in fields and fields["phone"] is not None:
            if not is_valid_phone(fields["phone"]):
                raise ValidationError("Please enter a valid Ghana phone number", field="phone")
            fields["phone"] = normalize_phone(fields["phone"])

        user = await self._get_user(user_id)
        for key, value in fields.items():
            if key in PROFILE_FIELDS:
                setattr(user, key, value)
        user.updated_at = datetime.utcnow()

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("profile_update_failed", user_id=str(user_id), error=str(e))
            raise PersistenceError("Error updating profile") from e

        logger.info("profile_updated", user_id=str(user_id), fields=sorted(fields))
        return to_profile(user)
