"""Login flow factory.

Wires the identity provider, user directory and session subsystem from the
environment configuration.
"""

import logging
from typing import Optional

from cognito_login.config.settings import get_settings
from cognito_login.infrastructure.auth.user_store import LocalUserStore
from cognito_login.infrastructure.redis.client import get_redis_client
from .cognito import CognitoProvider
from .pipeline import LoginPipeline
from .provider import IdentityProvider
from .resolver import IdentityResolver
from .session import SessionManager

logger = logging.getLogger(__name__)

# Global provider instance (initialized on first call, caches the JWKS)
_provider_instance: Optional[IdentityProvider] = None


def get_identity_provider() -> IdentityProvider:
    """Get the configured identity provider instance.

    Returns:
        Configured IdentityProvider instance

    Raises:
        ValueError: If COGNITO_CLIENT_ID or COGNITO_DOMAIN is missing
    """
    global _provider_instance

    if _provider_instance is not None:
        return _provider_instance

    settings = get_settings()
    if not settings.cognito_client_id or not settings.cognito_domain:
        raise ValueError("Cognito login requires: COGNITO_DOMAIN, COGNITO_CLIENT_ID")

    _provider_instance = CognitoProvider(
        domain=settings.cognito_domain,
        client_id=settings.cognito_client_id,
        client_secret=settings.cognito_client_secret,
        redirect_uri=settings.cognito_redirect_uri,
        scopes=settings.cognito_scopes.split(),
        issuer=settings.token_issuer,
        jwks_url=settings.jwks_url,
        verify_signature=settings.verify_id_token_signature,
        timeout_seconds=settings.token_exchange_timeout_seconds,
    )

    logger.info(f"Identity provider initialized: {_provider_instance.__class__.__name__}")
    return _provider_instance


async def get_user_store() -> LocalUserStore:
    """User directory backed by the shared Redis connection."""
    redis_client = await get_redis_client()
    return LocalUserStore(redis_client.get_client())


async def get_session_manager() -> SessionManager:
    """Session subsystem using the configured signing key."""
    settings = get_settings()
    redis_client = await get_redis_client()
    return SessionManager(
        user_store=await get_user_store(),
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        session_expire_minutes=settings.session_expire_minutes,
        redis_client=redis_client.get_client(),
    )


async def get_login_pipeline() -> LoginPipeline:
    """Login flow for one request, with a fresh snapshot of the options."""
    settings = get_settings()
    provider = get_identity_provider()
    sessions = await get_session_manager()
    return LoginPipeline(
        provider=provider,
        resolver=IdentityResolver(sessions.user_store),
        sessions=sessions,
        config=settings.pipeline_config(),
        code_param=settings.oauth_code_param,
    )


async def get_optional_login_pipeline() -> Optional[LoginPipeline]:
    """Login flow, or None when the provider is not configured."""
    try:
        return await get_login_pipeline()
    except ValueError as e:
        logger.error(f"Login flow unavailable: {e}")
        return None


def reset_provider() -> None:
    """Reset the global provider instance (for testing)."""
    global _provider_instance
    _provider_instance = None
