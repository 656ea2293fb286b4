from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from invoicing.database import get_db
from invoicing.middleware.auth import get_current_session
from invoicing.schemas.profile import ProfileResponse, ProfileUpdate
from invoicing.services.logo_service import delete_logo, upload_logo
from invoicing.services.profile_service import ProfileService
from invoicing.services.session import UserSession
from invoicing.services.storage import storage_client

logger = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=ProfileResponse)
async def get_profile(
    session: UserSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    return await ProfileService(db).get_profile(session.user_id)


@router.put("", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    session: UserSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    return await ProfileService(db).update_profile(
        session.user_id, **body.model_dump(exclude_unset=True)
    )


@router.post("/logo", response_model=ProfileResponse)
async def upload_profile_logo(
    file: UploadFile = File(...),
    session: UserSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    """Upload or replace the business logo (images only, 2 MB max)."""
    data = await file.read()
    return await upload_logo(
        ProfileService(db),
        storage_client,
        session.user_id,
        file.filename,
        file.content_type,
        data,
    )


@router.delete("/logo", response_model=ProfileResponse)
async def delete_profile_logo(
    session: UserSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    return await delete_logo(ProfileService(db), storage_client, session.user_id)
