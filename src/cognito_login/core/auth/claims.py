"""Identity token payload decoding."""

import logging

from jose import jwt
from jose.exceptions import JOSEError

from cognito_login.domain.models import Claims
from .errors import TokenParseFailed

logger = logging.getLogger(__name__)


def parse_jwt(token: str) -> Claims:
    """Decode the payload segment of a JWT without checking its signature.

    The token must have the usual three dot-separated segments; the middle
    one is base64url-encoded JSON and must decode to an object.

    Args:
        token: Compact-serialized JWT

    Returns:
        Claims from the token payload

    Raises:
        TokenParseFailed: If the token is not a well-formed JWT
    """
    if not isinstance(token, str) or token.count(".") != 2:
        raise TokenParseFailed("Identity token is not a three-segment JWT")

    try:
        return dict(jwt.get_unverified_claims(token))
    except JOSEError as e:
        logger.warning(f"Identity token payload could not be decoded: {e}")
        raise TokenParseFailed(f"Malformed identity token: {e}")
