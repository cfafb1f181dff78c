"""Federated login through an OAuth 2.0 / OIDC identity provider.

The callback pipeline turns an authorization code into a local session:
- provider: identity provider contract (Cognito implementation in cognito.py)
- resolver: claims -> local user, with optional just-in-time provisioning
- session: session tokens for local users
- pipeline: the per-request login gate
"""

from .errors import LoginAborted
from .factory import (
    get_identity_provider,
    get_login_pipeline,
    get_optional_login_pipeline,
    get_session_manager,
)
from .pipeline import LoginPipeline, LoginRequestContext
from .provider import IdentityProvider

__all__ = [
    "IdentityProvider",
    "LoginAborted",
    "LoginPipeline",
    "LoginRequestContext",
    "get_identity_provider",
    "get_login_pipeline",
    "get_optional_login_pipeline",
    "get_session_manager",
]
