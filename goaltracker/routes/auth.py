"""
Authentication routes (GitHub OAuth sign-in + bearer tokens).

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from ..dependencies import (
    CurrentUser,
    DBDep,
    IdentityProviderDep,
    SettingsDep,
    TokenServiceDep,
    get_current_user,
)
from ..exceptions import ProviderExchangeError
from ..models.auth import AuthTokenResponse, MessageResponse, PrincipalResponse, PrincipalSummary
from ..services.user_service import resolve_principal

# Get logger for this module
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

NONCE_COOKIE = "oauth_nonce"
NONCE_COOKIE_PATH = "/auth"


# ==========================================
#  OAUTH SIGN-IN
# ==========================================


@router.get("/login", status_code=status.HTTP_302_FOUND)
async def login(identity_provider: IdentityProviderDep, settings: SettingsDep):
    """
    Start GitHub sign-in.

    Redirects to GitHub with a signed state and binds the state's nonce to
    this browser through an HttpOnly cookie.
    """
    authorization = identity_provider.begin_authorization()

    response = RedirectResponse(authorization.url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        NONCE_COOKIE,
        authorization.nonce,
        max_age=settings.OAUTH_STATE_TTL_SECONDS,
        path=NONCE_COOKIE_PATH,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
    )
    return response


@router.get("/callback", response_model=AuthTokenResponse)
async def oauth_callback(
    request: Request,
    identity_provider: IdentityProviderDep,
    token_service: TokenServiceDep,
    db: DBDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """
    Handle the redirect back from GitHub.

    On success the response body carries the bearer token and a summary of
    the principal. On failure the response is a 401 without a token.
    """
    logger.info(
        "OAuth callback received",
        extra={
            "has_code": bool(code),
            "state_prefix": state[:8] if state else None,
            "provider_error": error,
        },
    )

    if error:
        raise ProviderExchangeError(f"Provider returned error: {error}")
    if not code or not state:
        raise ProviderExchangeError("Callback is missing code or state")

    profile = await identity_provider.complete_authorization(
        code, state, request.cookies.get(NONCE_COOKIE)
    )
    user = await resolve_principal(db, profile)
    token = token_service.issue(user)

    logger.info(
        "OAuth sign-in completed",
        extra={"user_id": user.id, "provider": profile.provider},
    )

    body = AuthTokenResponse(
        token=token,
        expires_in=int(token_service.lifetime.total_seconds()),
        principal=PrincipalSummary.model_validate(user),
    )
    response = JSONResponse(content=body.model_dump())
    # The nonce is single use
    response.delete_cookie(NONCE_COOKIE, path=NONCE_COOKIE_PATH)
    return response


# ==========================================
#  SESSIONLESS ACCOUNT ENDPOINTS
# ==========================================


@router.get("/me", response_model=PrincipalResponse)
async def read_current_principal(current_user: CurrentUser):
    """
    Return the authenticated principal.
    """
    return current_user


@router.post(
    "/logout",
    response_model=MessageResponse,
    dependencies=[Depends(get_current_user)],
)
async def logout():
    """
    Acknowledge logout.

    Tokens are stateless, so nothing is invalidated here; the client is
    expected to discard its token.
    """
    return {"message": "Logged out successfully"}
