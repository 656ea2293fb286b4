"""
Business logo upload and removal.

Type and size are checked before any network call. Logos live at
``<user_id>/logo.<ext>`` so each user has at most one and paths never
collide across users.
"""

import asyncio
import re
from typing import Optional

import structlog

from invoicing.config import settings
from invoicing.exceptions import PersistenceError, UploadError, UploadTooLarge
from invoicing.schemas.profile import ProfileResponse
from invoicing.services.profile_service import ProfileService
from invoicing.services.storage import StorageClient

logger = structlog.get_logger()

DEFAULT_LOGO_EXTENSION = "png"
_EXTENSION_REGEX = re.compile(r"[a-z0-9]{1,5}")


def validate_logo(content_type: Optional[str], size: int) -> None:
    if not content_type or not content_type.startswith("image/"):
        raise UploadError("Please select an image file", field="file")
    if size > settings.MAX_LOGO_SIZE_BYTES:
        limit_mb = settings.MAX_LOGO_SIZE_BYTES // (1024 * 1024)
        raise UploadTooLarge(f"Image size should be less than {limit_mb}MB", field="file")


def _extension(filename: Optional[str], content_type: Optional[str]) -> str:
    candidates = []
    if filename and "." in filename:
        candidates.append(filename.rsplit(".", 1)[-1].lower())
    if content_type and "/" in content_type:
        # image/svg+xml -> svg
        candidates.append(content_type.split("/", 1)[1].split("+", 1)[0].lower())
    for ext in candidates:
        if _EXTENSION_REGEX.fullmatch(ext):
            return ext
    return DEFAULT_LOGO_EXTENSION


def logo_key(user_id: str, filename: Optional[str], content_type: Optional[str] = None) -> str:
    return f"{user_id}/logo.{_extension(filename, content_type)}"


def logo_key_from_url(user_id: str, logo_url: str) -> str:
    return f"{user_id}/{logo_url.rstrip('/').rsplit('/', 1)[-1]}"


async def upload_logo(
    profiles: ProfileService,
    storage: StorageClient,
    user_id: str,
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
) -> ProfileResponse:
    validate_logo(content_type, len(data))
    key = logo_key(user_id, filename, content_type)
    previous = await profiles.get_profile(user_id)

    try:
        await asyncio.to_thread(storage.upload, key, data, content_type)
    except Exception as e:
        logger.error("logo_upload_failed", user_id=user_id, key=key, error=str(e))
        raise PersistenceError("Failed to upload logo. Please try again.") from e

    public_url = storage.get_public_url(key)
    profile = await profiles.update_profile(user_id, logo_url=public_url)

    # A new extension means a new key; drop the object it replaces.
    if previous.logo_url:
        old_key = logo_key_from_url(user_id, previous.logo_url)
        if old_key != key:
            try:
                await asyncio.to_thread(storage.delete, old_key)
            except Exception as e:
                logger.error("logo_storage_delete_failed", user_id=user_id, key=old_key, error=str(e))

    logger.info("logo_uploaded", user_id=user_id, key=key)
    return profile


async def delete_logo(
    profiles: ProfileService, storage: StorageClient, user_id: str
) -> ProfileResponse:
    """Remove the stored object, then clear ``logo_url``.

    A storage failure is logged and does not stop the profile update; a
    profile failure is raised.
    """
    profile = await profiles.get_profile(user_id)
    if not profile.logo_url:
        return profile

    key = logo_key_from_url(user_id, profile.logo_url)
    try:
        await asyncio.to_thread(storage.delete, key)
    except Exception as e:
        logger.error("logo_storage_delete_failed", user_id=user_id, key=key, error=str(e))

    profile = await profiles.update_profile(user_id, logo_url=None)
    logger.info("logo_removed", user_id=user_id)
    return profile
