"""
Unit tests for invoicing/services/logo_service.py

ProfileService and StorageClient are mocked; no bucket or database needed.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from invoicing.exceptions import PersistenceError, UploadError, UploadTooLarge
from invoicing.schemas.profile import ProfileResponse
from invoicing.services.logo_service import (
    delete_logo,
    logo_key,
    logo_key_from_url,
    upload_logo,
    validate_logo,
)
from tests.factories import USER_ID

PUBLIC_URL = f"https://cdn.test/logos/{USER_ID}/logo.png"
TWO_MB = 2 * 1024 * 1024


def _profile(logo_url=None) -> ProfileResponse:
    return ProfileResponse(id=USER_ID, email="owner@shop.com.gh", logo_url=logo_url)


def _mock_profiles(current_logo=None) -> MagicMock:
    profiles = MagicMock()
    profiles.get_profile = AsyncMock(return_value=_profile(current_logo))
    profiles.update_profile = AsyncMock(
        side_effect=lambda user_id, **fields: _profile(fields.get("logo_url"))
    )
    return profiles


def _mock_storage() -> MagicMock:
    storage = MagicMock()
    storage.get_public_url.side_effect = lambda key: f"https://cdn.test/logos/{key}"
    return storage


# ---------------------------------------------------------------------------
# validate_logo / keys
# ---------------------------------------------------------------------------

def test_validate_logo_accepts_image_at_limit():
    validate_logo("image/png", TWO_MB)


@pytest.mark.parametrize("content_type", ["application/pdf", "text/plain", "", None])
def test_validate_logo_rejects_non_images(content_type):
    with pytest.raises(UploadError) as exc:
        validate_logo(content_type, 100)
    assert not isinstance(exc.value, UploadTooLarge)


def test_validate_logo_rejects_oversize():
    with pytest.raises(UploadTooLarge, match="2MB"):
        validate_logo("image/jpeg", TWO_MB + 1)


def test_logo_key_is_namespaced_by_user():
    assert logo_key(USER_ID, "Brand.JPG") == f"{USER_ID}/logo.jpg"
    assert logo_key(USER_ID, None) == f"{USER_ID}/logo.png"
    assert logo_key(USER_ID, "noext") == f"{USER_ID}/logo.png"


def test_logo_key_rejects_unsafe_extensions():
    assert logo_key(USER_ID, "a.png/x", "image/png") == f"{USER_ID}/logo.png"
    assert logo_key(USER_ID, "a.p../../etc", "image/jpeg") == f"{USER_ID}/logo.jpeg"
    assert logo_key(USER_ID, "a.toolongext", None) == f"{USER_ID}/logo.png"
    assert logo_key(USER_ID, None, "image/svg+xml") == f"{USER_ID}/logo.svg"


def test_logo_key_from_url():
    assert logo_key_from_url(USER_ID, PUBLIC_URL) == f"{USER_ID}/logo.png"


# ---------------------------------------------------------------------------
# upload_logo
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_upload_logo_stores_and_updates_profile():
    profiles, storage = _mock_profiles(), _mock_storage()

    profile = await upload_logo(profiles, storage, USER_ID, "logo.png", "image/png", b"\x89PNG")

    storage.upload.assert_called_once_with(f"{USER_ID}/logo.png", b"\x89PNG", "image/png")
    profiles.update_profile.assert_awaited_once_with(USER_ID, logo_url=PUBLIC_URL)
    assert profile.logo_url == PUBLIC_URL


@pytest.mark.asyncio
async def test_upload_with_new_extension_removes_previous_object():
    profiles, storage = _mock_profiles(PUBLIC_URL), _mock_storage()

    profile = await upload_logo(profiles, storage, USER_ID, "logo.jpg", "image/jpeg", b"jpg")

    storage.upload.assert_called_once_with(f"{USER_ID}/logo.jpg", b"jpg", "image/jpeg")
    storage.delete.assert_called_once_with(f"{USER_ID}/logo.png")
    assert profile.logo_url.endswith("/logo.jpg")


@pytest.mark.asyncio
async def test_upload_with_same_key_keeps_overwritten_object():
    profiles, storage = _mock_profiles(PUBLIC_URL), _mock_storage()

    await upload_logo(profiles, storage, USER_ID, "new.png", "image/png", b"png")

    storage.delete.assert_not_called()


@pytest.mark.asyncio
async def test_upload_logo_rejects_before_any_network_call():
    profiles, storage = _mock_profiles(), _mock_storage()

    with pytest.raises(UploadTooLarge):
        await upload_logo(profiles, storage, USER_ID, "big.png", "image/png", b"x" * (TWO_MB + 1))

    storage.upload.assert_not_called()
    profiles.update_profile.assert_not_awaited()


@pytest.mark.asyncio
async def test_upload_logo_storage_failure_leaves_profile_alone():
    profiles, storage = _mock_profiles(), _mock_storage()
    storage.upload.side_effect = RuntimeError("bucket unavailable")

    with pytest.raises(PersistenceError, match="Failed to upload logo"):
        await upload_logo(profiles, storage, USER_ID, "logo.png", "image/png", b"data")

    profiles.update_profile.assert_not_awaited()


# ---------------------------------------------------------------------------
# delete_logo
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_logo_removes_object_and_clears_url():
    profiles, storage = _mock_profiles(PUBLIC_URL), _mock_storage()

    profile = await delete_logo(profiles, storage, USER_ID)

    storage.delete.assert_called_once_with(f"{USER_ID}/logo.png")
    profiles.update_profile.assert_awaited_once_with(USER_ID, logo_url=None)
    assert profile.logo_url is None


@pytest.mark.asyncio
async def test_delete_logo_without_logo_is_noop():
    profiles, storage = _mock_profiles(None), _mock_storage()

    await delete_logo(profiles, storage, USER_ID)

    storage.delete.assert_not_called()
    profiles.update_profile.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_logo_continues_after_storage_failure():
    profiles, storage = _mock_profiles(PUBLIC_URL), _mock_storage()
    storage.delete.side_effect = RuntimeError("not found")

    profile = await delete_logo(profiles, storage, USER_ID)

    profiles.update_profile.assert_awaited_once_with(USER_ID, logo_url=None)
    assert profile.logo_url is None


@pytest.mark.asyncio
async def test_delete_logo_profile_failure_is_raised():
    profiles, storage = _mock_profiles(PUBLIC_URL), _mock_storage()
    profiles.update_profile.side_effect = PersistenceError("Error updating profile")

    with pytest.raises(PersistenceError):
        await delete_logo(profiles, storage, USER_ID)
    storage.delete.assert_called_once()
