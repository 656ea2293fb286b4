from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
import structlog

from invoicing.services.auth_service import verify_access_token
from invoicing.services.session import UserSession, session_store

logger = structlog.get_logger()

security = HTTPBearer()


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": {"code": code, "message": message}},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> UserSession:
    """FastAPI dependency: verify the JWT and resolve the live session it names."""
    try:
        payload = verify_access_token(credentials.credentials)
    except JWTError as e:
        logger.warning("auth_token_invalid", error=str(e))
        raise _unauthorized("AUTH_TOKEN_INVALID", "Invalid or expired token")

    session = await session_store.get(payload.get("sid", ""))
    if session is None or session.user_id != payload.get("sub"):
        logger.warning("auth_session_missing", user_id=payload.get("sub"))
        raise _unauthorized("AUTH_SESSION_ENDED", "Session has ended, please sign in again")
    return session
