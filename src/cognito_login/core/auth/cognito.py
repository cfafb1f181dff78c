"""AWS Cognito identity provider.

Talks to a Cognito user pool's hosted UI and OAuth 2.0 endpoints:
- {domain}/oauth2/authorize: hosted login page
- {domain}/oauth2/token: authorization code exchange
- cognito-idp JWKS: public keys for identity token signatures

Any standard OIDC provider exposing the same endpoints works as well.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from cognito_login.domain.models import Claims, TokenResponse
from .claims import parse_jwt
from .errors import TokenParseFailed
from .provider import IdentityProvider

logger = logging.getLogger(__name__)


class CognitoProvider(IdentityProvider):
    """Cognito user pool provider.

    Example Configuration:
        COGNITO_DOMAIN=https://my-app.auth.eu-west-1.amazoncognito.com
        COGNITO_CLIENT_ID=xxx
        COGNITO_CLIENT_SECRET=xxx (optional, confidential clients only)
        COGNITO_REDIRECT_URI=https://blog.example.com/
        COGNITO_REGION=eu-west-1
        COGNITO_USER_POOL_ID=eu-west-1_AbCdEf123
    """

    def __init__(
        self,
        domain: str,
        client_id: str,
        redirect_uri: str,
        client_secret: Optional[str] = None,
        scopes: list[str] = None,
        issuer: Optional[str] = None,
        jwks_url: Optional[str] = None,
        verify_signature: bool = True,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Cognito provider.

        Args:
            domain: Hosted UI base URL of the user pool
            client_id: App client ID
            redirect_uri: Callback URL registered on the app client
            client_secret: App client secret (sent as HTTP Basic auth)
            scopes: Scopes to request (default: openid email profile)
            issuer: Expected `iss` of identity tokens
            jwks_url: URL of the pool's JSON Web Key Set
            verify_signature: Verify identity tokens against the JWKS
            timeout_seconds: Upper bound for every outbound request
            transport: Custom httpx transport (tests)
        """
        self.domain = domain.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or ["openid", "email", "profile"]
        self.issuer = issuer
        self.jwks_url = jwks_url
        self.timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

        # Signature checks need to know where the keys live
        self.verify_signature = bool(verify_signature and issuer and jwks_url)
        if verify_signature and not self.verify_signature:
            logger.warning(
                "Identity token signature verification requested but the user pool "
                "(COGNITO_REGION / COGNITO_USER_POOL_ID) is not configured"
            )
        if not self.verify_signature:
            logger.warning(
                "Identity tokens will be decoded WITHOUT signature verification. "
                "Claims are trusted because they arrive over TLS directly from the token endpoint."
            )

        self._jwks: Optional[dict] = None

    @property
    def token_endpoint(self) -> str:
        return f"{self.domain}/oauth2/token"

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.domain}/oauth2/authorize"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def get_login_url(self, state: Optional[str] = None) -> str:
        """Generate the hosted UI authorization URL.

        Args:
            state: Opaque value echoed back on the callback (optional)

        Returns:
            Authorization URL to redirect user to
        """
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "redirect_uri": self.redirect_uri,
        }
        if state:
            params["state"] = state

        return f"{self.authorize_endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Optional[TokenResponse]:
        """Exchange authorization code for tokens.

        Args:
            code: Authorization code from the callback

        Returns:
            TokenResponse, or None if the exchange failed for any reason
        """
        data = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        auth = (self.client_id, self.client_secret) if self.client_secret else None

        try:
            async with self._client() as client:
                response = await client.post(
                    self.token_endpoint,
                    data=data,
                    auth=auth,
                    headers={"Content-Type": "application/x-www-form-urlencoded"}
                )
        except httpx.TimeoutException:
            logger.error(f"Token exchange timed out after {self.timeout.read}s")
            return None
        except httpx.HTTPError as e:
            logger.error(f"Token exchange request failed: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"Token exchange failed: {response.status_code} {response.text}")
            return None

        try:
            return TokenResponse.model_validate(response.json())
        except ValueError as e:
            # json.JSONDecodeError and pydantic's ValidationError are both ValueErrors
            logger.error(f"Token endpoint returned an unusable body: {e}")
            return None

    async def parse_id_token(self, id_token: str) -> Claims:
        """Decode the identity token, verifying it when the pool is configured.

        Args:
            id_token: Identity token from the token response

        Returns:
            Decoded token claims

        Raises:
            TokenParseFailed: If the token is malformed or fails verification
        """
        claims = parse_jwt(id_token)
        if not self.verify_signature:
            return claims

        jwks = await self._get_jwks()
        kid = self._token_kid(id_token)
        if kid and not self._has_key(jwks, kid):
            # Pool signing keys were rotated since the set was cached
            logger.info(f"Signing key {kid} not in cached JWKS, refreshing")
            self._jwks = None
            jwks = await self._get_jwks()

        try:
            verified = jwt.decode(
                id_token,
                jwks,
                algorithms=["RS256"],
                issuer=self.issuer,
                audience=self.client_id,
                options={"verify_at_hash": False}
            )
        except JOSEError as e:
            logger.warning(f"Identity token verification failed: {e}")
            raise TokenParseFailed(f"Identity token verification failed: {e}")

        # Cognito access tokens are signed by the same keys
        if verified.get("token_use", "id") != "id":
            raise TokenParseFailed(f"Unexpected token_use: {verified.get('token_use')}")

        return verified

    async def _get_jwks(self) -> dict:
        """Fetch JSON Web Key Set for token validation."""
        if self._jwks is None:
            try:
                async with self._client() as client:
                    response = await client.get(self.jwks_url)
                    response.raise_for_status()
                    self._jwks = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Failed to load JWKS from {self.jwks_url}: {e}")
                raise TokenParseFailed("Signing keys unavailable")
            logger.info(f"JWKS loaded from {self.jwks_url}")
        return self._jwks

    @staticmethod
    def _token_kid(id_token: str) -> Optional[str]:
        """Key ID from the token header, if it names one."""
        try:
            return jwt.get_unverified_header(id_token).get("kid")
        except JOSEError:
            return None

    @staticmethod
    def _has_key(jwks: dict, kid: str) -> bool:
        if not isinstance(jwks, dict):
            return False
        return any(key.get("kid") == kid for key in jwks.get("keys", []))
