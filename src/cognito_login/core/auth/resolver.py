"""Identity resolution: identity token claims -> local username.

Order of attempts for one login:
1. exact username match on the configured claim's value
2. for email-shaped values, a match on the part before the first "@"
3. just-in-time account creation, when enabled

The first successful step wins; a user is never created after a match.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from cognito_login.domain.models import Claims, LocalUser, PipelineConfig, ProvisionedUser
from .errors import ClaimMissing, UserCreationDisabled, UserCreationFailed

logger = logging.getLogger(__name__)


class UserDirectory(Protocol):
    """Lookup and provisioning operations the resolver needs."""

    async def find_user_by_username(self, username: str) -> Optional[LocalUser]: ...

    async def create_user(self, claims: Claims, username: str) -> Optional[ProvisionedUser]: ...


@dataclass
class ResolvedIdentity:
    """Local account a login attempt resolved to"""
    username: str
    user: LocalUser
    matched_by: str  # 'exact', 'local_part', 'created' or 'concurrent'

    @property
    def created(self) -> bool:
        return self.matched_by == "created"


def username_from_claims(claims: Claims, attribute: str) -> str:
    """Read the configured username claim.

    The claim is looked up by key. Non-string values are stringified.

    Raises:
        ClaimMissing: If the claim is absent or null
    """
    value = claims.get(attribute)
    if value is None:
        raise ClaimMissing(f"Identity token has no '{attribute}' claim")
    return value if isinstance(value, str) else str(value)


def email_local_part(username: str) -> Optional[str]:
    """Text before the first "@", or None if there is no "@" at all."""
    if "@" not in username:
        return None
    return username.split("@", 1)[0]


class IdentityResolver:
    """Maps identity token claims onto a local user."""

    def __init__(self, directory: UserDirectory):
        self.directory = directory

    async def resolve(self, claims: Claims, config: PipelineConfig) -> ResolvedIdentity:
        """Find or create the local user for a set of claims.

        Args:
            claims: Claims of the identity token
            config: Options for this login attempt

        Returns:
            ResolvedIdentity carrying the username to log in

        Raises:
            ClaimMissing: If the username claim is absent
            UserCreationDisabled: If no user matched and provisioning is off
            UserCreationFailed: If provisioning was attempted and failed
        """
        username = username_from_claims(claims, config.username_attribute)

        user = await self.directory.find_user_by_username(username)
        if user:
            logger.info(f"Identity resolved to existing user '{username}'")
            return ResolvedIdentity(username=username, user=user, matched_by="exact")

        # A user matching only the local part of an email logs in under that name
        local_part = email_local_part(username)
        if local_part is not None:
            user = await self.directory.find_user_by_username(local_part)
            if user:
                logger.info(f"Identity '{username}' resolved to existing user '{local_part}'")
                return ResolvedIdentity(username=local_part, user=user, matched_by="local_part")

        if not config.provisioning_enabled:
            raise UserCreationDisabled(f"No local user for '{username}' and user creation is disabled")

        try:
            provisioned = await self.directory.create_user(claims, username)
        except Exception as e:
            logger.error(f"User directory raised while creating '{username}': {e}")
            provisioned = None

        if not provisioned:
            raise UserCreationFailed(f"Could not create local user '{username}'")

        user = provisioned.user
        if not provisioned.created:
            logger.info(f"User '{user.username}' was provisioned by a concurrent login")
            return ResolvedIdentity(username=user.username, user=user, matched_by="concurrent")

        logger.info(f"Provisioned new user '{user.username}' from identity claims")
        return ResolvedIdentity(username=user.username, user=user, matched_by="created")
