"""Authentication Data Models

Purpose: Define data structures for users, provider tokens and login attempts

Key Components:
- LocalUser: An account in the local user directory
- ProvisionedUser: Result of just-in-time account creation
- TokenResponse: Result of an authorization code exchange
- PipelineConfig: Options consulted while handling one login attempt
- LoginState / LoginResult: Progress and outcome of one login attempt
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


# Claims decoded from an identity token payload
Claims = Dict[str, Any]


def parse_utc_timestamp(timestamp_str: str) -> datetime:
    """Parse UTC timestamp string to datetime object"""
    if isinstance(timestamp_str, datetime):
        return timestamp_str
    return datetime.fromisoformat(timestamp_str.replace('Z', '+00:00'))


def to_json_compatible(value):
    """Convert datetime to JSON-compatible ISO format string"""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass
class LocalUser:
    """User account in the local directory

    Attributes:
        user_id: Unique identifier (UUID format)
        username: Unique login name
        email: User email address
        display_name: Human-readable display name
        created_at: Account creation timestamp
        is_active: Account active status
        provisioned: True when the account was created from identity claims
        roles: List of user roles (e.g., ['subscriber'])
    """
    user_id: str
    username: str
    email: str
    display_name: str
    created_at: datetime
    is_active: bool = True
    provisioned: bool = False
    roles: list[str] = None

    def __post_init__(self):
        """Set default roles if not provided"""
        if self.roles is None:
            self.roles = ['subscriber']

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "user_id": self.user_id,
            "username": self.username,
            "email": self.email,
            "display_name": self.display_name,
            "created_at": to_json_compatible(self.created_at),
            "is_active": self.is_active,
            "provisioned": self.provisioned,
            "roles": self.roles,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'LocalUser':
        """Create from dictionary (JSON deserialization)"""
        return cls(
            user_id=data["user_id"],
            username=data["username"],
            email=data["email"],
            display_name=data["display_name"],
            created_at=parse_utc_timestamp(data["created_at"]),
            is_active=data.get("is_active", True),
            provisioned=data.get("provisioned", False),
            roles=data.get("roles"),
        )


@dataclass
class ProvisionedUser:
    """Outcome of a create request against the user directory

    Attributes:
        user: The account the username now belongs to
        created: False when a concurrent request created the account first
    """
    user: LocalUser
    created: bool = True


class TokenResponse(BaseModel):
    """Tokens returned by the provider's token endpoint.

    Only `id_token` is used by the login flow. Never persisted.
    """
    model_config = ConfigDict(extra="ignore")

    id_token: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None


class PipelineConfig(BaseModel):
    """Options read during a login attempt (read-only for the attempt)."""
    model_config = ConfigDict(frozen=True)

    username_attribute: str = "email"
    create_new_user: str = "false"
    homepage: str = ""
    disable_wp_login: str = "false"

    @property
    def provisioning_enabled(self) -> bool:
        return self.create_new_user == "true"

    @property
    def wp_login_disabled(self) -> bool:
        return self.disable_wp_login == "true"


class LoginState(Enum):
    """Progress of a login attempt. Transitions only move forward."""
    IDLE = "idle"
    CODE_FOUND = "code_found"
    TOKEN_EXCHANGED = "token_exchanged"
    CLAIMS_PARSED = "claims_parsed"
    USER_RESOLVED = "user_resolved"
    SESSION_ESTABLISHED = "session_established"
    REDIRECTED = "redirected"
    ABORTED = "aborted"
    SKIPPED = "skipped"


@dataclass
class LoginResult:
    """Outcome of one pass through the login flow

    Attributes:
        state: Terminal state reached
        username: Username the session was established for
        session_token: Signed session token to hand to the browser
        redirect_url: Post-login destination, if one is configured
        abort_reason: Reason code when the attempt was aborted
        created_user: True when the account was provisioned during this attempt
    """
    state: LoginState
    username: Optional[str] = None
    session_token: Optional[str] = None
    redirect_url: Optional[str] = None
    abort_reason: Optional[str] = None
    created_user: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state in (LoginState.SESSION_ESTABLISHED, LoginState.REDIRECTED)
