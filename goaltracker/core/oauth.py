"""
GitHub OAuth 2.0 authorization-code client.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx
from jose import JWTError, jwt
from pydantic import BaseModel

from ..config import Settings
from ..exceptions import ConfigurationError, ProviderExchangeError, ProviderProfileError
from .security import utc_now

logger = logging.getLogger(__name__)

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API_URL = "https://api.github.com"

STATE_TOKEN_TYPE = "oauth_state"


class ProviderProfile(BaseModel):
    """Profile returned by an identity provider after a successful exchange."""

    provider: str
    subject_id: str
    username: str
    display_name: str | None = None
    email: str | None = None
    avatar_url: str | None = None


@dataclass
class AuthorizationRequest:
    """Everything the login route needs to redirect the browser."""

    url: str
    state: str
    nonce: str


class OAuthStateSigner:
    """
    Stateless anti-forgery state for the authorization round trip.

    The state sent to the provider is a short-lived signed token wrapping a
    random nonce. The same nonce is kept by the browser in an HttpOnly
    cookie, so a callback is accepted only when the returned state is
    authentic, unexpired, and bound to the browser that started the flow.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = 600,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._secret = secret
        self.ttl = timedelta(seconds=ttl_seconds)
        self.algorithm = algorithm
        self._clock = clock

    def sign(self, nonce: str) -> str:
        now = self._clock()
        claims = {
            "nonce": nonce,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
            "type": STATE_TOKEN_TYPE,
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, state: str, nonce: str | None) -> bool:
        """Return True when the state is authentic, fresh, and matches the nonce."""
        if not state or not nonce:
            return False
        try:
            payload = jwt.decode(
                state,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return False

        if payload.get("type") != STATE_TOKEN_TYPE:
            return False
        expires_at = payload.get("exp")
        if not isinstance(expires_at, int) or self._clock().timestamp() >= expires_at:
            return False
        expected = payload.get("nonce")
        if not isinstance(expected, str):
            return False
        return secrets.compare_digest(expected, nonce)


class GitHubIdentityProvider:
    """
    Drives the authorization-code flow against GitHub.

    Instances are constructed explicitly and handed to the application
    factory; there is no global provider registry.
    """

    name = "github"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        state_signer: OAuthStateSigner,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or ["read:user", "user:email"]
        self._state_signer = state_signer
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    def begin_authorization(self) -> AuthorizationRequest:
        """Build the provider authorization URL with a fresh anti-forgery state."""
        nonce = secrets.token_urlsafe(32)
        state = self._state_signer.sign(nonce)

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
            "allow_signup": "true",
        }
        url = f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}"

        logger.info(
            "OAuth authorization initiated",
            extra={"provider": self.name, "state_prefix": state[:8]},
        )
        return AuthorizationRequest(url=url, state=state, nonce=nonce)

    async def complete_authorization(
        self, code: str, state: str, nonce: str | None
    ) -> ProviderProfile:
        """
        Finish the flow: check state, exchange the code, fetch the profile.

        No step is retried. Authorization codes are single use, so a failure
        means the user has to start again from /auth/login.

        Raises:
            ProviderExchangeError: State mismatch or the code exchange failed
            ProviderProfileError: The profile request failed
        """
        if not self._state_signer.verify(state, nonce):
            raise ProviderExchangeError("OAuth state is missing, expired or does not match")

        access_token = await self._exchange_code(code)
        user = await self._fetch_user(access_token)

        email = user.get("email")
        if not email:
            email = await self._fetch_primary_email(access_token)

        profile = ProviderProfile(
            provider=self.name,
            subject_id=str(user["id"]),
            username=user["login"],
            display_name=user.get("name"),
            email=email,
            avatar_url=user.get("avatar_url"),
        )
        logger.info(
            "OAuth profile retrieved",
            extra={
                "provider": self.name,
                "subject_id": profile.subject_id,
                "has_email": profile.email is not None,
            },
        )
        return profile

    async def _exchange_code(self, code: str) -> str:
        try:
            response = await self._http.post(
                GITHUB_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self._client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            token_response = response.json()
        except httpx.HTTPError as e:
            raise ProviderExchangeError(f"Token request failed: {e}") from e
        except ValueError as e:
            raise ProviderExchangeError("Token response is not valid JSON") from e

        # GitHub reports a bad or expired code with HTTP 200 and an error field
        if "error" in token_response:
            raise ProviderExchangeError(
                f"Provider rejected the code: {token_response.get('error')}"
            )
        access_token = token_response.get("access_token")
        if not access_token:
            raise ProviderExchangeError(
                f"No access token in response. Keys: {list(token_response.keys())}"
            )
        return access_token

    async def _api_get(self, path: str, access_token: str) -> Any:
        response = await self._http.get(
            f"{GITHUB_API_URL}{path}",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/vnd.github+json",
            },
        )
        response.raise_for_status()
        return response.json()

    async def _fetch_user(self, access_token: str) -> dict[str, Any]:
        try:
            user = await self._api_get("/user", access_token)
        except httpx.HTTPError as e:
            raise ProviderProfileError(f"Profile request failed: {e}") from e
        except ValueError as e:
            raise ProviderProfileError("Profile response is not valid JSON") from e

        if not isinstance(user, dict) or "id" not in user or not user.get("login"):
            raise ProviderProfileError("Profile response is missing id or login")
        return user

    async def _fetch_primary_email(self, access_token: str) -> str | None:
        """Look up the primary verified address. Optional; failures leave email empty."""
        try:
            emails = await self._api_get("/user/emails", access_token)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Could not fetch provider email addresses",
                extra={"provider": self.name, "error": str(e)},
            )
            return None

        if not isinstance(emails, list):
            return None
        for entry in emails:
            if isinstance(entry, dict) and entry.get("primary") and entry.get("verified"):
                return entry.get("email")
        return None


def build_identity_provider(settings: Settings) -> GitHubIdentityProvider:
    """Construct the GitHub client from settings."""
    if not settings.GITHUB_CLIENT_ID or not settings.GITHUB_CLIENT_SECRET:
        raise ConfigurationError(
            "GitHub OAuth is not configured",
            detail="Set GITHUB_CLIENT_ID and GITHUB_CLIENT_SECRET",
        )
    if not settings.JWT_SECRET:
        raise ConfigurationError(
            "Token signing secret is not configured",
            detail="JWT_SECRET also signs the OAuth state",
        )

    signer = OAuthStateSigner(
        settings.JWT_SECRET,
        ttl_seconds=settings.OAUTH_STATE_TTL_SECONDS,
        algorithm=settings.JWT_ALGORITHM,
    )
    return GitHubIdentityProvider(
        client_id=settings.GITHUB_CLIENT_ID,
        client_secret=settings.GITHUB_CLIENT_SECRET,
        redirect_uri=settings.GITHUB_CALLBACK_URL,
        state_signer=signer,
        scopes=settings.GITHUB_SCOPES,
        timeout=settings.OAUTH_HTTP_TIMEOUT_SECONDS,
    )
