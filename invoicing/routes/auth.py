from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from invoicing.config import settings
from invoicing.database import get_db
from invoicing.exceptions import AuthError, ValidationError
from invoicing.middleware.auth import get_current_session
from invoicing.models.user import User
from invoicing.schemas.auth import (
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
)
from invoicing.schemas.profile import ProfileResponse
from invoicing.services.auth_service import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_refresh_token,
)
from invoicing.services.profile_service import ProfileService
from invoicing.services.session import UserSession, session_store
from invoicing.services.validation import is_valid_phone, normalize_phone

logger = structlog.get_logger()

router = APIRouter()


def _issue_tokens(session: UserSession) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(session.user_id, session.email, session.session_id),
        refresh_token=create_refresh_token(session.user_id, session.session_id),
        token_type="Bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create an account and sign it in."""
    if body.phone is not None and not is_valid_phone(body.phone):
        raise ValidationError("Please enter a valid Ghana phone number", field="phone")

    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": {
                    "code": "USER_EMAIL_EXISTS",
                    "message": f"Email '{body.email}' is already registered",
                }
            },
        )

    user = User(
        email=body.email,
        password_hash=hash_password(body.password),
        business_name=body.business_name,
        phone=normalize_phone(body.phone) if body.phone else None,
        is_active=True,
        last_login_at=datetime.utcnow(),
    )
    db.add(user)
    await db.commit()

    session = await session_store.create(str(user.id), user.email)
    logger.info("user_registered", user_id=str(user.id))
    return _issue_tokens(session)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Authenticate and open a new session."""
    result = await db.execute(
        select(User).where(User.email == body.email, User.is_active == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.password_hash):
        raise AuthError("Invalid email or password")

    user.last_login_at = datetime.utcnow()
    await db.commit()

    session = await session_store.create(str(user.id), user.email)
    logger.info("user_logged_in", user_id=str(user.id))
    return _issue_tokens(session)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshTokenRequest):
    """Issue new tokens for a session that is still open."""
    try:
        payload = verify_refresh_token(body.refresh_token)
    except Exception:
        payload = None

    session = await session_store.get(payload.get("sid", "")) if payload else None
    if session is None or session.user_id != payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "AUTH_REFRESH_INVALID",
                    "message": "Invalid or expired refresh token",
                }
            },
        )

    await session_store.touch(session.session_id)
    return _issue_tokens(session)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(session: UserSession = Depends(get_current_session)):
    """End the current session; its tokens stop working immediately."""
    await session_store.revoke(session.session_id)
    logger.info("user_logged_out", user_id=session.user_id)


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    session: UserSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    return await ProfileService(db).get_profile(session.user_id)
