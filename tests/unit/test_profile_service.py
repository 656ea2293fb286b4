"""Unit tests for invoicing/services/profile_service.py (mocked AsyncSession)."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from invoicing.exceptions import PersistenceError, ProfileNotFound, ValidationError
from invoicing.models.user import User
from invoicing.services.profile_service import ProfileService
from tests.factories import USER_ID


def _make_user() -> User:
    return User(
        id=uuid.UUID(USER_ID),
        email="owner@shop.com.gh",
        business_name="Adwoa's Fabrics",
        phone="0244123456",
        is_active=True,
    )


def _mock_session(user=None) -> AsyncMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    db = AsyncMock()
    db.execute = AsyncMock(return_value=result)
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


@pytest.mark.asyncio
async def test_get_profile():
    profile = await ProfileService(_mock_session(_make_user())).get_profile(USER_ID)
    assert profile.business_name == "Adwoa's Fabrics"
    assert profile.logo_url is None


@pytest.mark.asyncio
async def test_get_profile_missing():
    with pytest.raises(ProfileNotFound):
        await ProfileService(_mock_session(None)).get_profile(USER_ID)


@pytest.mark.asyncio
async def test_update_profile_normalizes_phone():
    user = _make_user()
    db = _mock_session(user)

    profile = await ProfileService(db).update_profile(USER_ID, phone="+233 55 123 4567")

    assert profile.phone == "+233551234567"
    assert user.phone == "+233551234567"
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_profile_rejects_bad_phone_before_touching_db():
    db = _mock_session(_make_user())
    with pytest.raises(ValidationError):
        await ProfileService(db).update_profile(USER_ID, phone="12345")
    db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_profile_ignores_unknown_fields():
    user = _make_user()
    await ProfileService(_mock_session(user)).update_profile(
        USER_ID, business_name="New Name", email="hijack@x.com"
    )
    assert user.business_name == "New Name"
    assert user.email == "owner@shop.com.gh"


@pytest.mark.asyncio
async def test_update_profile_commit_failure():
    db = _mock_session(_make_user())
    db.commit.side_effect = SQLAlchemyError("timeout")
    with pytest.raises(PersistenceError, match="Error updating profile"):
        await ProfileService(db).update_profile(USER_ID, business_name="X")
    db.rollback.assert_awaited_once()
