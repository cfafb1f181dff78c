"""Login Routes

Key Endpoints:
- GET /api/v1/auth/login: Redirect to the provider's hosted login page
- GET /api/v1/auth/callback: Explicit callback target for the provider
- GET /api/v1/auth/status: Current login state
- GET /api/v1/auth/config: Login URL and login form options
- POST /api/v1/auth/logout: Revoke the session
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from cognito_login.config.settings import get_settings
from cognito_login.core.auth import (
    IdentityProvider,
    LoginPipeline,
    get_identity_provider,
    get_optional_login_pipeline,
    get_session_manager,
)
from cognito_login.domain.models import LoginResult, LoginState
from cognito_login.core.auth.pipeline import redirect_to
from cognito_login.core.auth.session import SessionManager
from cognito_login.api.middleware.login import get_login_context, set_session_cookie

router = APIRouter(prefix="/api/v1/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


# ============================================================================
# Response Models
# ============================================================================

class CallbackResponse(BaseModel):
    """Outcome of a callback that did not redirect."""
    logged_in: bool
    username: Optional[str] = None
    state: str


class StatusResponse(BaseModel):
    """Login state of the current browser."""
    logged_in: bool
    username: Optional[str] = None
    display_name: Optional[str] = None


class LoginConfigResponse(BaseModel):
    """What a front end needs to render its login entry point."""
    login_url: str
    disable_wp_login: bool


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/login")
async def login(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Send the browser to the hosted login page.

    Visitors that already have a session go to the homepage instead.
    """
    settings = get_settings()
    token = request.cookies.get(settings.session_cookie_name)
    if await sessions.is_logged_in(token):
        return RedirectResponse(url=settings.homepage or "/", status_code=302)

    return RedirectResponse(url=provider.get_login_url(), status_code=302)


@router.get("/callback")
async def callback(
    request: Request,
    response: Response,
    pipeline: Optional[LoginPipeline] = Depends(get_optional_login_pipeline),
):
    """Handle the provider redirect.

    The login middleware usually handled the request already and set the
    session cookie; the run-once flag on the request context keeps the flow
    from running twice. Failures, including a missing provider
    configuration, are never reported to the visitor: they simply stay
    logged out.
    """
    ctx = get_login_context(request)
    handled_by_middleware = ctx.handled
    if pipeline is not None:
        await pipeline.handle(ctx)

    result = ctx.result or LoginResult(state=LoginState.ABORTED, abort_reason="not_configured")

    if result.redirect_url:
        redirect = redirect_to(result.redirect_url)
        set_session_cookie(redirect, result.session_token)
        return redirect

    if result.session_token and not handled_by_middleware:
        set_session_cookie(response, result.session_token)

    return CallbackResponse(
        logged_in=result.succeeded,
        username=result.username,
        state=result.state.value,
    )


@router.get("/status", response_model=StatusResponse)
async def status(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
):
    """Report whether the browser has a live session."""
    token = request.cookies.get(get_settings().session_cookie_name)
    user = await sessions.get_session_user(token)
    if not user:
        return StatusResponse(logged_in=False)

    return StatusResponse(logged_in=True, username=user.username, display_name=user.display_name)


@router.get("/config", response_model=LoginConfigResponse)
async def login_config(provider: IdentityProvider = Depends(get_identity_provider)):
    """Login URL and whether the native login form should be replaced."""
    settings = get_settings()
    return LoginConfigResponse(
        login_url=provider.get_login_url(),
        disable_wp_login=settings.pipeline_config().wp_login_disabled,
    )


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
):
    """Revoke the current session and clear the cookie."""
    settings = get_settings()
    token = request.cookies.get(settings.session_cookie_name)

    revoked = False
    if token:
        await sessions.log_out(token)
        revoked = True
        logger.info("Session revoked on logout")

    response.delete_cookie(settings.session_cookie_name)
    return {"message": "Logged out successfully", "revoked": revoked}
