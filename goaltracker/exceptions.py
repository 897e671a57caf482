"""
Application exception hierarchy.

Every error raised on purpose by the API derives from GoalTrackerError and is
rendered by the global handler in main.py as an ErrorResponse. The
authentication errors are grouped so that each group produces one response
shape no matter which member was raised.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

from fastapi import status


class GoalTrackerError(Exception):
    """
    Base class for all application errors.

    Attributes:
        message: User-facing message, safe to return to clients
        status_code: HTTP status code for the response
        code: Application error code for programmatic handling
        detail: Internal detail, only returned when DEBUG is on and
            expose_detail is True
        headers: Extra response headers
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_SERVER_ERROR"
    expose_detail: bool = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        detail: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.detail = detail
        self.headers = headers


# ============================================================================
# Identity provider failures
# ============================================================================


class AuthenticationFailedError(GoalTrackerError):
    """The OAuth handshake with the identity provider did not succeed."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_FAILED"
    expose_detail = False
    public_message = "Authentication with the identity provider failed"

    def __init__(self, reason: str) -> None:
        super().__init__(self.public_message, detail=reason)
        self.reason = reason


class ProviderExchangeError(AuthenticationFailedError):
    """Code exchange failed: bad or expired code, state mismatch, or transport error."""


class ProviderProfileError(AuthenticationFailedError):
    """The provider profile could not be fetched after a successful exchange."""


# ============================================================================
# Bearer credential failures
# ============================================================================


class UnauthenticatedError(GoalTrackerError):
    """
    Base for every bearer credential failure.

    Subclasses only differ in what gets logged. The response is identical so
    callers cannot tell an expired token from a forged one.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHENTICATED"
    expose_detail = False
    public_message = "Could not validate credentials"

    def __init__(self, reason: str) -> None:
        super().__init__(
            self.public_message,
            detail=reason,
            headers={"WWW-Authenticate": "Bearer"},
        )
        self.reason = reason


class MissingCredentialError(UnauthenticatedError):
    """No usable Authorization: Bearer header."""


class TokenInvalidError(UnauthenticatedError):
    """Malformed token, bad signature, wrong issuer or unexpected claims."""


class TokenExpiredError(UnauthenticatedError):
    """Token signature is valid but its expiry has passed."""


class PrincipalNotFoundError(UnauthenticatedError):
    """Token is valid but the principal it names no longer exists."""


# ============================================================================
# Startup and resource errors
# ============================================================================


class ConfigurationError(GoalTrackerError):
    """Required configuration is missing. Raised while building the app."""

    code = "CONFIGURATION_ERROR"


class ResourceNotFoundError(GoalTrackerError):
    """
    Requested resource does not exist for the caller.

    Raised both for absent records and for records owned by someone else.
    """

    status_code = status.HTTP_404_NOT_FOUND
    code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} with ID '{resource_id}' not found")
        self.resource = resource
        self.resource_id = resource_id
