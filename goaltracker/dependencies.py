"""
Dependency injection system.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

import logging
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings
from .core.database import get_db
from .core.oauth import GitHubIdentityProvider
from .core.security import TokenService
from .exceptions import MissingCredentialError, PrincipalNotFoundError
from .services.user_service import get_principal

if TYPE_CHECKING:
    from prisma.models import User

logger = logging.getLogger(__name__)


# Application-scoped objects are built by create_app and kept on app.state


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_identity_provider(request: Request) -> GitHubIdentityProvider:
    return request.app.state.identity_provider


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
TokenServiceDep = Annotated[TokenService, Depends(get_token_service)]
IdentityProviderDep = Annotated[GitHubIdentityProvider, Depends(get_identity_provider)]

# Database dependency
DBDep = Annotated[Any, Depends(get_db)]

# auto_error is off so a missing header raises our own 401 instead of
# FastAPI's default response
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    token_service: TokenServiceDep,
    db: DBDep,
) -> "User":
    """
    Gate for every protected route.

    Validates the bearer token, loads the principal it names and attaches it
    to request.state. Any failure is an UnauthenticatedError subclass, which
    the error handler turns into the same 401 response.
    """
    if credentials is None or not credentials.credentials:
        raise MissingCredentialError("Authorization header missing or not a bearer credential")

    # 1. Verify signature and expiry
    principal_id = token_service.verify(credentials.credentials)

    # 2. Fetch the principal from the database
    user = await get_principal(db, principal_id)
    if user is None:
        raise PrincipalNotFoundError(f"Principal {principal_id} no longer exists")

    request.state.principal = user
    return user


# Create a reusable type shortcut
CurrentUser = Annotated[Any, Depends(get_current_user)]
