"""Unit tests for the login gate

Provider, resolver and sessions are mocked; each test checks which stages
ran and where the attempt stopped.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from cognito_login.core.auth.errors import ClaimMissing, TokenParseFailed, UserCreationDisabled
from cognito_login.core.auth.pipeline import LoginPipeline, LoginRequestContext, extract_code, redirect_to
from cognito_login.core.auth.resolver import ResolvedIdentity
from cognito_login.domain.models import LocalUser, LoginState, PipelineConfig, TokenResponse

pytestmark = pytest.mark.unit


def _identity(username: str, matched_by: str = "exact") -> ResolvedIdentity:
    user = LocalUser(
        user_id="user-1",
        username=username,
        email=f"{username}@example.com",
        display_name=username,
        created_at=datetime.now(timezone.utc),
    )
    return ResolvedIdentity(username=username, user=user, matched_by=matched_by)


@pytest.fixture
def provider():
    provider = MagicMock()
    provider.exchange_code = AsyncMock(return_value=TokenResponse(id_token="header.payload.sig"))
    provider.parse_id_token = AsyncMock(return_value={"email": "alice@example.com"})
    return provider


@pytest.fixture
def resolver():
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value=_identity("alice"))
    return resolver


@pytest.fixture
def session_manager():
    sessions = MagicMock()
    sessions.is_logged_in = AsyncMock(return_value=False)
    sessions.log_in = AsyncMock(return_value="session-token")
    return sessions


def _pipeline(provider, resolver, session_manager, **options):
    return LoginPipeline(
        provider=provider,
        resolver=resolver,
        sessions=session_manager,
        config=PipelineConfig(**options),
    )


class TestExtractCode:
    def test_code_present(self):
        assert extract_code({"code": "abc"}) == "abc"

    def test_code_absent(self):
        assert extract_code({"page": "2"}) is None

    def test_empty_code(self):
        assert extract_code({"code": ""}) is None

    def test_custom_parameter(self):
        assert extract_code({"auth_code": "abc"}, "auth_code") == "abc"


class TestRedirectTo:
    def test_redirects_to_destination(self):
        response = redirect_to("https://blog.example.com/welcome")

        assert response.status_code == 302
        assert response.headers["location"] == "https://blog.example.com/welcome"


class TestLoginPipeline:
    """Test the gate's state machine"""

    @pytest.mark.asyncio
    async def test_successful_login_without_homepage(self, provider, resolver, session_manager):
        """Happy path: session established, no redirect configured"""
        pipeline = _pipeline(provider, resolver, session_manager)

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.state == LoginState.SESSION_ESTABLISHED
        assert result.succeeded is True
        assert result.username == "alice"
        assert result.session_token == "session-token"
        assert result.redirect_url is None
        provider.exchange_code.assert_awaited_once_with("abc")
        provider.parse_id_token.assert_awaited_once_with("header.payload.sig")
        session_manager.log_in.assert_awaited_once_with("alice")

    @pytest.mark.asyncio
    async def test_successful_login_redirects_to_homepage(self, provider, resolver, session_manager):
        """Happy path: redirect goes to exactly the configured homepage"""
        pipeline = _pipeline(provider, resolver, session_manager, homepage="https://blog.example.com/")

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.state == LoginState.REDIRECTED
        assert result.redirect_url == "https://blog.example.com/"

    @pytest.mark.asyncio
    async def test_fallback_username_is_logged_in(self, provider, resolver, session_manager):
        """Happy path: the derived local-part username gets the session"""
        resolver.resolve.return_value = _identity("bob", matched_by="local_part")
        pipeline = _pipeline(provider, resolver, session_manager)

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        session_manager.log_in.assert_awaited_once_with("bob")
        assert result.username == "bob"

    @pytest.mark.asyncio
    async def test_created_user_flagged(self, provider, resolver, session_manager):
        resolver.resolve.return_value = _identity("carol@example.com", matched_by="created")
        pipeline = _pipeline(provider, resolver, session_manager)

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.created_user is True

    @pytest.mark.asyncio
    async def test_concurrently_created_user_not_flagged(self, provider, resolver, session_manager):
        resolver.resolve.return_value = _identity("carol@example.com", matched_by="concurrent")
        pipeline = _pipeline(provider, resolver, session_manager)

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.succeeded is True
        assert result.created_user is False

    @pytest.mark.asyncio
    async def test_no_code_does_nothing(self, provider, resolver, session_manager):
        """Edge case: unrelated request -> no exchange, no session, no redirect"""
        pipeline = _pipeline(provider, resolver, session_manager, homepage="/home")

        result = await pipeline.handle(LoginRequestContext(query_params={"p": "1"}))

        assert result.state == LoginState.ABORTED
        assert result.abort_reason == "not_applicable"
        assert result.session_token is None
        assert result.redirect_url is None
        provider.exchange_code.assert_not_called()
        session_manager.is_logged_in.assert_not_called()

    @pytest.mark.asyncio
    async def test_existing_session_bypasses_flow(self, provider, resolver, session_manager):
        """Edge case: already logged in -> nothing happens regardless of query"""
        session_manager.is_logged_in.return_value = True
        pipeline = _pipeline(provider, resolver, session_manager, homepage="/home")

        result = await pipeline.handle(
            LoginRequestContext(query_params={"code": "abc"}, session_token="live")
        )

        assert result.state == LoginState.SKIPPED
        assert result.redirect_url is None
        session_manager.is_logged_in.assert_awaited_once_with("live")
        provider.exchange_code.assert_not_called()
        session_manager.log_in.assert_not_called()

    @pytest.mark.asyncio
    async def test_runs_once_per_request(self, provider, resolver, session_manager):
        """Edge case: second invocation on the same context is skipped"""
        pipeline = _pipeline(provider, resolver, session_manager)
        ctx = LoginRequestContext(query_params={"code": "abc"})

        first = await pipeline.handle(ctx)
        second = await pipeline.handle(ctx)

        assert first.state == LoginState.SESSION_ESTABLISHED
        assert second.state == LoginState.SKIPPED
        assert ctx.result is first
        provider.exchange_code.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_exchange_failure_stops_before_lookup(self, provider, resolver, session_manager):
        """Bad input: failed exchange -> no parse, lookup or session"""
        provider.exchange_code.return_value = None
        pipeline = _pipeline(provider, resolver, session_manager)

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.state == LoginState.ABORTED
        assert result.abort_reason == "exchange_failed"
        provider.parse_id_token.assert_not_called()
        resolver.resolve.assert_not_called()
        session_manager.log_in.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_token_stops_before_lookup(self, provider, resolver, session_manager):
        """Bad input: unparseable identity token -> no lookup"""
        provider.parse_id_token.side_effect = TokenParseFailed("bad token")
        pipeline = _pipeline(provider, resolver, session_manager)

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.abort_reason == "token_parse_failed"
        resolver.resolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_claim_stops_before_session(self, provider, resolver, session_manager):
        """Bad input: username claim absent -> no session"""
        resolver.resolve.side_effect = ClaimMissing("no email")
        pipeline = _pipeline(provider, resolver, session_manager)

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.abort_reason == "claim_missing"
        session_manager.log_in.assert_not_called()

    @pytest.mark.asyncio
    async def test_creation_disabled(self, provider, resolver, session_manager):
        resolver.resolve.side_effect = UserCreationDisabled("off")
        pipeline = _pipeline(provider, resolver, session_manager, homepage="/home")

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.abort_reason == "user_creation_disabled"
        assert result.redirect_url is None

    @pytest.mark.asyncio
    async def test_session_failure_means_no_redirect(self, provider, resolver, session_manager):
        """Bad input: log_in failure -> aborted, no redirect"""
        session_manager.log_in.return_value = None
        pipeline = _pipeline(provider, resolver, session_manager, homepage="/home")

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.state == LoginState.ABORTED
        assert result.abort_reason == "session_establish_failed"
        assert result.redirect_url is None

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_closed(self, provider, resolver, session_manager):
        """Bad input: an unexpected collaborator error leaves the visitor anonymous"""
        resolver.resolve.side_effect = RuntimeError("boom")
        pipeline = _pipeline(provider, resolver, session_manager)

        result = await pipeline.handle(LoginRequestContext(query_params={"code": "abc"}))

        assert result.state == LoginState.ABORTED
        assert result.abort_reason == "internal_error"
        session_manager.log_in.assert_not_called()

    @pytest.mark.asyncio
    async def test_context_records_final_state(self, provider, resolver, session_manager):
        provider.exchange_code.return_value = None
        pipeline = _pipeline(provider, resolver, session_manager)
        ctx = LoginRequestContext(query_params={"code": "abc"})

        await pipeline.handle(ctx)

        assert ctx.handled is True
        assert ctx.state == LoginState.ABORTED
