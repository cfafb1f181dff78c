"""User Storage System

Purpose: Local user directory consulted and extended by the login flow

This module provides account lookup and just-in-time account creation using
Redis as the backend store.

Key Features:
- Case-insensitive username and email lookup
- Account creation from identity token claims
- Create-or-fetch semantics for concurrent first logins
- Auto-generated user IDs and display names

Storage Schema:
- auth:user:{user_id} -> {user_json}
- auth:username:{username} -> {user_id}
- auth:email:{email} -> {user_id}
- auth:user_list -> {user_id, ...}
"""

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from redis.asyncio import Redis

from cognito_login.domain.models import LocalUser, ProvisionedUser

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "users.cognito.local"

# Longest address RFC 5321 allows on the wire
MAX_USERNAME_LENGTH = 254


class LocalUserStore:
    """Redis-backed user directory

    Redis Storage Schema:
    - auth:user:{user_id} -> {user_data}
    - auth:username:{username} -> {user_id}
    - auth:email:{email} -> {user_id}
    - auth:user_list -> [{user_id}, ...]
    """

    def __init__(self, redis_client: Redis):
        """Initialize user store

        Args:
            redis_client: Redis connection for user storage
        """
        self.redis = redis_client

        # Redis key patterns
        self.user_key_pattern = "auth:user:{}"
        self.username_key_pattern = "auth:username:{}"
        self.email_key_pattern = "auth:email:{}"
        self.user_list_key = "auth:user_list"

        # Validation patterns
        self.email_pattern = re.compile(r"^[^@]+@[^@]+\.[^@]+$")
        # Usernames are claim values: anything printable, spaces included
        self.control_chars = re.compile(r"[\x00-\x1f\x7f]")

    async def get_user(self, user_id: str) -> Optional[LocalUser]:
        """Get user by ID

        Args:
            user_id: User identifier

        Returns:
            LocalUser if found, None otherwise
        """
        try:
            if not user_id:
                return None

            user_key = self.user_key_pattern.format(user_id)
            user_data = await self._redis_get(user_key)

            if not user_data:
                return None

            return LocalUser.from_dict(json.loads(user_data))

        except Exception as e:
            logger.error(f"Failed to get user {user_id}: {e}")
            return None

    async def find_user_by_username(self, username: str) -> Optional[LocalUser]:
        """Get user by username

        Lookups are case-insensitive: usernames are indexed lower-cased.

        Args:
            username: Username to search for

        Returns:
            LocalUser if found, None otherwise
        """
        try:
            if not username:
                return None

            username_key = self.username_key_pattern.format(username.lower())
            user_id = await self._redis_get(username_key)

            if not user_id:
                return None

            return await self.get_user(user_id)

        except Exception as e:
            logger.error(f"Failed to get user by username {username}: {e}")
            return None

    async def get_user_by_email(self, email: str) -> Optional[LocalUser]:
        """Get user by email address

        Args:
            email: Email address to search for

        Returns:
            LocalUser if found, None otherwise
        """
        try:
            if not email:
                return None

            email_key = self.email_key_pattern.format(email.lower())
            user_id = await self._redis_get(email_key)

            if not user_id:
                return None

            return await self.get_user(user_id)

        except Exception as e:
            logger.error(f"Failed to get user by email {email}: {e}")
            return None

    async def create_user(self, claims: Mapping[str, Any], username: str) -> Optional[ProvisionedUser]:
        """Provision a user from identity token claims

        If another request created the same username first, that account is
        returned with `created=False` instead of failing.

        Args:
            claims: Claims of the identity token
            username: Login name for the new account

        Returns:
            ProvisionedUser for the username, None on failure
        """
        username = (username or "").strip()
        if not self._validate_username(username):
            logger.warning(f"Refusing to create user with invalid username {username!r}")
            return None

        email = str(claims.get("email") or "").strip().lower()
        if email and not self._validate_email(email):
            logger.warning(f"Refusing to create user '{username}': invalid email '{email}'")
            return None
        if not email:
            email = self._fallback_email(username)

        try:
            email_owner = await self.get_user_by_email(email)
            if email_owner and email_owner.username.lower() == username.lower():
                logger.info(f"User '{username}' was created concurrently, using {email_owner.user_id}")
                return ProvisionedUser(user=email_owner, created=False)
            if email_owner:
                logger.warning(f"Refusing to create user '{username}': email '{email}' already exists")
                return None

            user = LocalUser(
                user_id=str(uuid.uuid4()),
                username=username,
                email=email,
                display_name=self._display_name_from_claims(claims, username),
                created_at=datetime.now(timezone.utc),
                is_active=True,
                provisioned=True,
            )

            user_key = self.user_key_pattern.format(user.user_id)
            username_key = self.username_key_pattern.format(username.lower())
            email_key = self.email_key_pattern.format(email)

            # Write the record first so a reserved username always resolves
            await self._redis_set(user_key, json.dumps(user.to_dict()))
            if not await self.redis.set(username_key, user.user_id, nx=True):
                await self._redis_delete(user_key)
                existing = await self.find_user_by_username(username)
                if not existing:
                    return None
                logger.info(f"User '{username}' was created concurrently, using {existing.user_id}")
                return ProvisionedUser(user=existing, created=False)

            await self._redis_set(email_key, user.user_id)
            await self._redis_sadd(self.user_list_key, user.user_id)

            logger.info(f"Created user {user.user_id} with username '{username}'")
            return ProvisionedUser(user=user)

        except Exception as e:
            logger.error(f"Failed to create user '{username}': {e}")
            return None

    def _validate_username(self, username: str) -> bool:
        """Validate username: non-empty, bounded, no control characters"""
        return bool(
            username
            and len(username) <= MAX_USERNAME_LENGTH
            and not self.control_chars.search(username)
        )

    def _validate_email(self, email: str) -> bool:
        """Validate email format"""
        return bool(email and self.email_pattern.match(email))

    def _fallback_email(self, username: str) -> str:
        """Email for accounts whose claims carry none"""
        if self._validate_email(username) and " " not in username:
            return username.lower()
        local_part = re.sub(r"[\s@]+", ".", username.lower()).strip(".") or "user"
        return f"{local_part}@{PLACEHOLDER_EMAIL_DOMAIN}"

    def _display_name_from_claims(self, claims: Mapping[str, Any], username: str) -> str:
        """Pick a display name: name, then given + family name, then the username"""
        if claims.get("name"):
            return str(claims["name"])

        parts = [str(claims[key]) for key in ("given_name", "family_name") if claims.get(key)]
        if parts:
            return " ".join(parts)

        return self._generate_display_name(username)

    def _generate_display_name(self, username: str) -> str:
        """Generate display name from username"""
        # If username is an email, use the local part before @
        if self._validate_email(username):
            username = username.split("@")[0]
        display_name = username.replace(".", " ").replace("_", " ").replace("-", " ")
        return " ".join(word.capitalize() for word in display_name.split())

    # Redis async wrapper methods
    async def _redis_set(self, key: str, value: str) -> None:
        """Set Redis key"""
        try:
            return await self.redis.set(key, value)
        except Exception as e:
            logger.error(f"Redis SET failed for key {key}: {e}")
            raise

    async def _redis_get(self, key: str) -> Optional[str]:
        """Get Redis key value"""
        try:
            result = await self.redis.get(key)
            if isinstance(result, bytes):
                result = result.decode()
            return result if result else None
        except Exception as e:
            logger.error(f"Redis GET failed for key {key}: {e}")
            return None

    async def _redis_delete(self, key: str) -> None:
        """Delete Redis key"""
        try:
            return await self.redis.delete(key)
        except Exception as e:
            logger.error(f"Redis DELETE failed for key {key}: {e}")

    async def _redis_sadd(self, key: str, value: str) -> None:
        """Add to Redis set"""
        try:
            return await self.redis.sadd(key, value)
        except Exception as e:
            logger.error(f"Redis SADD failed for key {key}: {e}")
