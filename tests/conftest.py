import pytest

from invoicing.services.auth_service import create_access_token
from invoicing.services.session import UserSession
from tests.factories import USER_ID


@pytest.fixture
def user_session() -> UserSession:
    return UserSession(session_id="sess-123", user_id=USER_ID, email="owner@shop.com.gh")


@pytest.fixture
def access_token(user_session):
    return create_access_token(
        user_id=user_session.user_id,
        email=user_session.email,
        session_id=user_session.session_id,
    )


@pytest.fixture
def auth_headers(access_token):
    return {"Authorization": f"Bearer {access_token}"}
