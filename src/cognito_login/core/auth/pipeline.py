"""Login callback handling.

Turns a provider callback (a request carrying an authorization code) into a
local session:

    extract code -> exchange code -> parse identity token
        -> resolve local user -> establish session -> redirect

Every stage can stop the attempt. A stopped attempt has no visible effect:
the visitor just keeps browsing unauthenticated. Reasons are logged.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from fastapi.responses import RedirectResponse

from cognito_login.domain.models import LoginResult, LoginState, PipelineConfig
from .errors import (
    ExchangeFailed,
    LoginAborted,
    NotApplicable,
    SessionEstablishFailed,
)
from .provider import IdentityProvider
from .resolver import IdentityResolver
from .session import SessionManager

logger = logging.getLogger(__name__)


def extract_code(query_params: Mapping[str, str], param: str = "code") -> Optional[str]:
    """Pull the authorization code out of the request query, if any."""
    code = query_params.get(param)
    if not code:
        return None
    return code


def redirect_to(destination: str) -> RedirectResponse:
    """Send the browser to the post-login destination."""
    return RedirectResponse(url=destination, status_code=302)


@dataclass
class LoginRequestContext:
    """Request-scoped input of the login flow

    Attributes:
        query_params: Query parameters of the incoming request
        session_token: Session token the request already carries, if any
        handled: Set once the flow ran for this request
        state: Last stage the flow reached
        result: Outcome of that run
    """
    query_params: Mapping[str, str]
    session_token: Optional[str] = None
    handled: bool = False
    state: LoginState = LoginState.IDLE
    result: Optional[LoginResult] = None


class LoginPipeline:
    """Runs the login flow for one request.

    Stateless between requests: everything request-specific lives in the
    LoginRequestContext, collaborators are injected.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        resolver: IdentityResolver,
        sessions: SessionManager,
        config: PipelineConfig,
        code_param: str = "code",
    ):
        self.provider = provider
        self.resolver = resolver
        self.sessions = sessions
        self.config = config
        self.code_param = code_param

    async def handle(self, ctx: LoginRequestContext) -> LoginResult:
        """Run the login flow at most once for a request.

        Args:
            ctx: Request-scoped context (marked handled on return)

        Returns:
            LoginResult describing where the attempt stopped
        """
        if ctx.handled:
            return LoginResult(state=LoginState.SKIPPED, abort_reason="already_handled")
        ctx.handled = True

        try:
            ctx.result = await self._run(ctx)
        except NotApplicable:
            ctx.result = LoginResult(state=LoginState.ABORTED, abort_reason=NotApplicable.reason)
        except LoginAborted as e:
            logger.info(f"Login attempt aborted after {ctx.state.value} ({e.reason}): {e}")
            ctx.result = LoginResult(state=LoginState.ABORTED, abort_reason=e.reason)
        except Exception as e:
            # Fail closed: the visitor stays anonymous, the page still renders
            logger.error(f"Login attempt failed after {ctx.state.value}: {e}", exc_info=True)
            ctx.result = LoginResult(state=LoginState.ABORTED, abort_reason="internal_error")

        ctx.state = ctx.result.state
        return ctx.result

    async def _run(self, ctx: LoginRequestContext) -> LoginResult:
        code = extract_code(ctx.query_params, self.code_param)
        if code is None:
            raise NotApplicable("No authorization code in request")

        if await self.sessions.is_logged_in(ctx.session_token):
            logger.debug("Login callback ignored: request already has a session")
            return LoginResult(state=LoginState.SKIPPED, abort_reason="already_logged_in")
        ctx.state = LoginState.CODE_FOUND

        tokens = await self.provider.exchange_code(code)
        if tokens is None:
            raise ExchangeFailed("Authorization code could not be exchanged")
        ctx.state = LoginState.TOKEN_EXCHANGED

        claims = await self.provider.parse_id_token(tokens.id_token)
        ctx.state = LoginState.CLAIMS_PARSED

        identity = await self.resolver.resolve(claims, self.config)
        ctx.state = LoginState.USER_RESOLVED

        session_token = await self.sessions.log_in(identity.username)
        if not session_token:
            raise SessionEstablishFailed(f"Could not log in '{identity.username}'")
        ctx.state = LoginState.SESSION_ESTABLISHED

        redirect_url = None
        if self.config.homepage:
            redirect_url = self.config.homepage
            ctx.state = LoginState.REDIRECTED

        logger.info(f"Login completed for '{identity.username}' (state={ctx.state.value})")
        return LoginResult(
            state=ctx.state,
            username=identity.username,
            session_token=session_token,
            redirect_url=redirect_url,
            created_user=identity.created,
        )
