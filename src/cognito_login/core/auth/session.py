"""Session subsystem.

Logs a local user in by issuing a signed session token (JWT) that the
browser carries in a cookie, and answers whether a request already has a
live session. Logout revokes a token through a Redis-backed blacklist.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Set

from jose import jwt, JWTError
from redis.asyncio import Redis

from cognito_login.domain.models import LocalUser
from cognito_login.infrastructure.auth.user_store import LocalUserStore

logger = logging.getLogger(__name__)

# In-memory revocation list (fallback when Redis is unavailable)
# WARNING: This only works for single-instance deployments!
_memory_blacklist: Set[str] = set()
_blacklist_lock = asyncio.Lock()


class SessionManager:
    """Issues and checks session tokens for local users.

    Configuration:
        SECRET_KEY=<your-secret-key>
        JWT_ALGORITHM=HS256 (default)
        SESSION_EXPIRE_MINUTES=1440 (default)
    """

    def __init__(
        self,
        user_store: LocalUserStore,
        secret_key: str,
        algorithm: str = "HS256",
        session_expire_minutes: int = 1440,
        redis_client: Optional[Redis] = None,
    ):
        """Initialize session manager.

        Args:
            user_store: Directory the session users live in
            secret_key: Secret key for session token signing
            algorithm: JWT signing algorithm (HS256 recommended)
            session_expire_minutes: Session lifetime in minutes
            redis_client: Redis connection for the revocation list
        """
        self.user_store = user_store
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.session_expire = timedelta(minutes=session_expire_minutes)
        self.redis = redis_client

        if secret_key == "dev-secret-change-in-production":
            logger.warning(
                "Using default SECRET_KEY! "
                "Set SECRET_KEY environment variable in production!"
            )

    async def log_in(self, username: str) -> Optional[str]:
        """Establish a session for an existing user.

        Args:
            username: Login name of the user

        Returns:
            Signed session token, or None if the user cannot log in
        """
        user = await self.user_store.find_user_by_username(username)
        if not user:
            logger.warning(f"Session refused: user '{username}' not found")
            return None

        if not user.is_active:
            logger.warning(f"Session refused: user '{username}' is inactive")
            return None

        token = self._create_session_token(user)
        logger.info(f"Session established for {user.username} ({user.user_id})")
        return token

    async def is_logged_in(self, token: Optional[str]) -> bool:
        """Check whether a session token belongs to a live session."""
        return await self.get_session_user(token) is not None

    async def get_session_user(self, token: Optional[str]) -> Optional[LocalUser]:
        """Resolve the user behind a session token.

        Args:
            token: Session token from the cookie (may be None)

        Returns:
            LocalUser if the session is valid, None otherwise
        """
        if not token:
            return None

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.debug(f"Session token rejected: {e}")
            return None

        if payload.get("type") != "session" or not payload.get("sub"):
            return None

        if await self._is_token_revoked(token):
            return None

        user = await self.user_store.get_user(payload["sub"])
        if not user or not user.is_active:
            return None

        return user

    async def log_out(self, token: str) -> None:
        """Revoke a session token for the rest of its lifetime.

        Args:
            token: Session token to revoke
        """
        ttl = 3600
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False}
            )
            exp = payload.get("exp")
            if exp:
                ttl = int(exp - datetime.now(timezone.utc).timestamp())
        except JWTError:
            logger.debug("Malformed session token revoked for 1h")

        if ttl <= 0:
            return

        try:
            if self.redis is None:
                raise RuntimeError("Redis not configured")
            await self.redis.setex(f"session_blacklist:{token}", ttl, "1")
            logger.debug(f"Session revoked in Redis (TTL: {ttl}s)")
        except Exception as e:
            logger.warning(
                f"Redis unavailable for session revocation, using in-memory fallback: {e}. "
                "WARNING: This only works for single-instance deployments!"
            )
            async with _blacklist_lock:
                _memory_blacklist.add(token)

    def _create_session_token(self, user: LocalUser) -> str:
        """Create signed session token.

        Args:
            user: User the session belongs to

        Returns:
            Encoded JWT session token
        """
        now = datetime.now(timezone.utc)

        payload = {
            "sub": user.user_id,
            "username": user.username,
            "type": "session",
            "iat": now,
            "exp": now + self.session_expire,
            "jti": str(uuid.uuid4()),
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    async def _is_token_revoked(self, token: str) -> bool:
        """Check the revocation list (Redis preferred, in-memory fallback)."""
        try:
            if self.redis is None:
                raise RuntimeError("Redis not configured")
            return await self.redis.exists(f"session_blacklist:{token}") > 0
        except Exception as e:
            logger.debug(f"Redis unavailable for revocation check, using in-memory: {e}")
            async with _blacklist_lock:
                return token in _memory_blacklist
