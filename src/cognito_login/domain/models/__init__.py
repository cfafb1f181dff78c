"""Domain models for Cognito Login Service"""

from cognito_login.domain.models.auth import (
    Claims,
    LocalUser,
    LoginResult,
    LoginState,
    PipelineConfig,
    ProvisionedUser,
    TokenResponse,
    parse_utc_timestamp,
    to_json_compatible,
)

__all__ = [
    "Claims",
    "LocalUser",
    "LoginResult",
    "LoginState",
    "PipelineConfig",
    "ProvisionedUser",
    "TokenResponse",
    "parse_utc_timestamp",
    "to_json_compatible",
]
