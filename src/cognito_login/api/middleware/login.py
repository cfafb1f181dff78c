"""Login callback middleware.

The identity provider redirects the browser back to the site root (or any
page) with `?code=...`. This middleware inspects every GET request, runs the
login flow when a code is present and, on success, sets the session cookie
and optionally redirects to the configured homepage. Anything else passes
through untouched.
"""

import logging
from typing import Awaitable, Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from cognito_login.config.settings import get_settings
from cognito_login.core.auth.factory import get_login_pipeline
from cognito_login.core.auth.pipeline import (
    LoginPipeline,
    LoginRequestContext,
    extract_code,
    redirect_to,
)

logger = logging.getLogger(__name__)

PipelineFactory = Callable[[], Awaitable[LoginPipeline]]


def get_login_context(request: Request) -> LoginRequestContext:
    """Request-scoped login context, shared by the middleware and the routes."""
    ctx = getattr(request.state, "cognito_login", None)
    if ctx is None:
        settings = get_settings()
        ctx = LoginRequestContext(
            query_params=request.query_params,
            session_token=request.cookies.get(settings.session_cookie_name),
        )
        request.state.cognito_login = ctx
    return ctx


def set_session_cookie(response: Response, token: str) -> None:
    """Hand the session token to the browser."""
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_expire_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


class CognitoLoginMiddleware(BaseHTTPMiddleware):
    """Runs the login flow for GET requests carrying an authorization code."""

    def __init__(self, app, pipeline_factory: Optional[PipelineFactory] = None):
        super().__init__(app)
        self.pipeline_factory = pipeline_factory or get_login_pipeline

    async def dispatch(self, request: Request, call_next):
        if request.method != "GET":
            return await call_next(request)

        ctx = get_login_context(request)
        if extract_code(ctx.query_params, get_settings().oauth_code_param) is None:
            return await call_next(request)

        try:
            pipeline = await self.pipeline_factory()
        except Exception as e:
            logger.error(f"Login flow unavailable: {e}")
            return await call_next(request)

        result = await pipeline.handle(ctx)

        if result.redirect_url:
            response = redirect_to(result.redirect_url)
        else:
            response = await call_next(request)

        if result.session_token:
            set_session_cookie(response, result.session_token)
        return response
