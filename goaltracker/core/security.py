"""
Bearer token issuance and verification (JWT).

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from ..config import Settings
from ..exceptions import ConfigurationError, TokenExpiredError, TokenInvalidError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"

# Secrets shorter than this still work but are reported at startup
MIN_RECOMMENDED_SECRET_LENGTH = 32


def utc_now() -> datetime:
    return datetime.now(UTC)


class TokenService:
    """
    Mint and verify stateless bearer tokens.

    Tokens carry the principal id in ``sub`` together with ``iat``, ``exp``,
    ``iss`` and a ``type`` claim. Nothing is persisted; a token is valid
    exactly while its signature checks out and ``exp`` lies in the future.
    """

    def __init__(
        self,
        secret: str | None,
        *,
        algorithm: str = "HS256",
        issuer: str = "goaltracker",
        lifetime: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not secret:
            raise ConfigurationError(
                "Token signing secret is not configured",
                detail="Set JWT_SECRET; the service refuses to sign with a default secret",
            )
        if len(secret) < MIN_RECOMMENDED_SECRET_LENGTH:
            logger.warning(
                "Token signing secret is shorter than recommended",
                extra={"min_length": MIN_RECOMMENDED_SECRET_LENGTH},
            )
        self._secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.lifetime = lifetime
        self._clock = clock

    def issue(self, principal: Any) -> str:
        """
        Create a signed token for a principal.

        Args:
            principal: Any object with an ``id`` attribute (a User record)

        Returns:
            Encoded JWT
        """
        issued_at = self._clock()
        expires_at = issued_at + self.lifetime
        claims = {
            "sub": str(principal.id),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self.issuer,
            "type": ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """
        Verify a token and return the principal id it carries.

        Expiry is evaluated against the service clock rather than by the JWT
        library so it can be tested with a clock offset.

        Raises:
            TokenInvalidError: If the token is malformed, forged, issued by
                someone else or has an unexpected shape
            TokenExpiredError: If the token has expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_exp": False},
            )
        except JWTError as e:
            raise TokenInvalidError(f"Token decode failed: {e}") from e

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise TokenInvalidError("Unexpected token type")

        principal_id = payload.get("sub")
        if not isinstance(principal_id, str) or not principal_id:
            raise TokenInvalidError("Token has no subject")

        expires_at = payload.get("exp")
        if not isinstance(expires_at, int | float):
            raise TokenInvalidError("Token has no expiry")

        if self._clock().timestamp() >= expires_at:
            raise TokenExpiredError("Token has expired")

        return principal_id


def build_token_service(settings: Settings) -> TokenService:
    """Build the token service from settings, failing closed on a missing secret."""
    return TokenService(
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        issuer=settings.JWT_ISSUER,
        lifetime=timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
    )
