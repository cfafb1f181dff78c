"""
Pytest configuration and fixtures for the Cognito login tests.

Provides fixtures for:
- In-memory Redis stand-in
- User store and session manager
- Identity token factories
- Pipeline options
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import pytest
from jose import jwt

from cognito_login.core.auth.factory import reset_provider
from cognito_login.domain.models import PipelineConfig
from cognito_login.infrastructure.auth.user_store import LocalUserStore
from cognito_login.core.auth.session import SessionManager

TEST_CLIENT_ID = "test-client-id"
TEST_SECRET_KEY = "test-secret-key"


class InMemoryRedis:
    """Dict-backed subset of the redis.asyncio API used by the service."""

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.sets: Dict[str, set] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, nx=False):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def setex(self, key, ttl, value):
        self.data[key] = value
        return True

    async def exists(self, key):
        return 1 if key in self.data else 0

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    async def sadd(self, key, value):
        self.sets.setdefault(key, set()).add(value)
        return 1


@pytest.fixture(autouse=True)
def _reset_provider():
    """Drop the cached provider between tests."""
    reset_provider()
    yield
    reset_provider()


@pytest.fixture
def redis():
    """Fresh in-memory Redis"""
    return InMemoryRedis()


@pytest.fixture
def user_store(redis):
    """User store over the in-memory Redis"""
    return LocalUserStore(redis)


@pytest.fixture
def sessions(user_store, redis):
    """Session manager signing with the test key"""
    return SessionManager(
        user_store=user_store,
        secret_key=TEST_SECRET_KEY,
        algorithm="HS256",
        session_expire_minutes=60,
        redis_client=redis,
    )


@pytest.fixture
def pipeline_config():
    """Default options: username from email, no provisioning, no redirect"""
    return PipelineConfig(username_attribute="email", create_new_user="false", homepage="")


@pytest.fixture
def id_token_claims():
    """Claims of a typical Cognito identity token"""
    now = datetime.now(timezone.utc)
    return {
        "sub": "7d8ca528-4931-4254-9273-ea5ee853f271",
        "email": "alice@example.com",
        "email_verified": True,
        "cognito:username": "alice",
        "name": "Alice Example",
        "aud": TEST_CLIENT_ID,
        "token_use": "id",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=1)).timestamp()),
    }


@pytest.fixture
def make_id_token():
    """Build a compact JWT carrying the given claims (HS256 unless told otherwise)"""
    def _make(claims: Dict[str, Any], key: str = "unused-signing-key", **kwargs) -> str:
        return jwt.encode(claims, key, **kwargs)
    return _make


@pytest.fixture
def seed_user(user_store):
    """Create directory users the way provisioning would"""
    async def _seed(username: str, email: Optional[str] = None):
        claims = {"email": email} if email else {}
        result = await user_store.create_user(claims, username)
        assert result is not None
        return result.user
    return _seed
