"""
Server-side sign-in sessions.

A session is created on sign-in, looked up on every authenticated request
(via the ``sid`` token claim) and torn down on sign-out. Request handlers
receive a ``UserSession`` instead of reaching for ambient auth state.
"""

import json
import uuid
from dataclasses import dataclass
from typing import Optional

import structlog

from invoicing.config import settings
from invoicing.services.cache import UpstashClient, cache

logger = structlog.get_logger()

_KEY_PREFIX = "session:"


@dataclass(frozen=True)
class UserSession:
    session_id: str
    user_id: str
    email: str


class SessionStore:
    def __init__(self, backend: UpstashClient = cache, ttl_seconds: Optional[int] = None):
        self.backend = backend
        self.ttl_seconds = ttl_seconds or settings.REFRESH_TOKEN_EXPIRE_DAYS * 86_400

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{_KEY_PREFIX}{session_id}"

    async def create(self, user_id: str, email: str) -> UserSession:
        session = UserSession(session_id=uuid.uuid4().hex, user_id=str(user_id), email=email)
        await self.backend.set(
            self._key(session.session_id),
            json.dumps({"user_id": session.user_id, "email": session.email}),
            self.ttl_seconds,
        )
        logger.info("session_created", user_id=session.user_id, session_id=session.session_id)
        return session

    async def get(self, session_id: str) -> Optional[UserSession]:
        raw = await self.backend.get(self._key(session_id))
        if not raw:
            return None
        data = json.loads(raw)
        return UserSession(session_id=session_id, user_id=data["user_id"], email=data["email"])

    async def touch(self, session_id: str) -> None:
        await self.backend.expire(self._key(session_id), self.ttl_seconds)

    async def revoke(self, session_id: str) -> None:
        await self.backend.delete(self._key(session_id))
        logger.info("session_revoked", session_id=session_id)


session_store = SessionStore()
