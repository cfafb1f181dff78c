"""Login flow errors.

Each stage of the login flow raises one of these to stop the attempt. The
gate catches every LoginAborted, logs it and leaves the visitor
unauthenticated; none of them are shown to the end user or retried.
"""


class LoginAborted(Exception):
    """A login attempt was stopped before a session was established."""

    reason = "aborted"

    def __init__(self, message: str = ""):
        super().__init__(message or self.reason)


class NotApplicable(LoginAborted):
    """Request carries no authorization code; not a login attempt."""
    reason = "not_applicable"


class ExchangeFailed(LoginAborted):
    """Token endpoint unreachable, refused the code or returned garbage."""
    reason = "exchange_failed"


class TokenParseFailed(LoginAborted):
    """Identity token is malformed or failed signature verification."""
    reason = "token_parse_failed"


class ClaimMissing(LoginAborted):
    """Configured username claim is absent from the identity token."""
    reason = "claim_missing"


class UserCreationDisabled(LoginAborted):
    """No matching user and just-in-time provisioning is off."""
    reason = "user_creation_disabled"


class UserCreationFailed(LoginAborted):
    """The user directory refused to create the account."""
    reason = "user_creation_failed"


class SessionEstablishFailed(LoginAborted):
    """The session subsystem could not log the user in."""
    reason = "session_establish_failed"
