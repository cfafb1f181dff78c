"""Abstract identity provider interface.

This module defines the contract the login flow needs from an OAuth 2.0 /
OIDC identity provider: where to send the browser, how to trade an
authorization code for tokens, and how to read the identity token.
"""

from abc import ABC, abstractmethod
from typing import Optional

from cognito_login.domain.models import Claims, TokenResponse


class IdentityProvider(ABC):
    """Abstract interface for the upstream identity provider.

    The login flow only ever talks to the provider through these three
    methods, so tests and alternative providers can be swapped in freely.
    """

    @abstractmethod
    def get_login_url(self, state: Optional[str] = None) -> str:
        """Build the URL that starts the provider's hosted login.

        Args:
            state: Opaque value echoed back on the callback (optional)

        Returns:
            Authorization URL to redirect the browser to
        """
        pass

    @abstractmethod
    async def exchange_code(self, code: str) -> Optional[TokenResponse]:
        """Exchange an authorization code for tokens.

        The code is single use: a failed exchange is never retried.

        Args:
            code: Authorization code from the provider callback

        Returns:
            TokenResponse on success, None on any failure
        """
        pass

    @abstractmethod
    async def parse_id_token(self, id_token: str) -> Claims:
        """Decode the identity token into its claims.

        Args:
            id_token: Identity token from the token response

        Returns:
            Claims mapping

        Raises:
            TokenParseFailed: If the token is malformed or fails verification
        """
        pass
