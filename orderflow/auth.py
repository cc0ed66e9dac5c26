"""
Bearer token verification.

Tokens are issued by the user service and signed with a shared HS256
secret. Only the user_id claim is read.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from authlib.jose import jwt
from authlib.jose.errors import JoseError

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Missing, malformed, expired or badly signed token."""
    pass


@dataclass
class Identity:
    """Caller resolved from a verified token."""
    user_id: int


class TokenVerifier:
    """
    Verifies HS256 tokens produced by the external token issuer.
    """

    def __init__(self, secret: str):
        self.secret = secret

    def verify(self, token: str) -> Identity:
        try:
            claims = jwt.decode(token, self.secret)
            claims.validate()
        except JoseError as e:
            logger.debug("Rejected token: %s", e)
            raise AuthError("Invalid token") from e
        except ValueError as e:
            # Tokens that are not even structurally JWTs
            raise AuthError("Invalid token") from e

        user_id = claims.get("user_id")
        if user_id is None:
            raise AuthError("Token has no user_id claim")
        try:
            user_id = int(user_id)
        except (TypeError, ValueError) as e:
            raise AuthError("Token has a malformed user_id claim") from e

        return Identity(user_id=user_id)

    def verify_header(self, authorization: Optional[str]) -> Identity:
        """
        Verify an ``Authorization: Bearer <token>`` header value.
        """
        if not authorization:
            raise AuthError("Missing bearer token")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthError("Missing bearer token")
        return self.verify(token.strip())
