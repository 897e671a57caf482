"""
Authentication models (Pydantic schemas).

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

# --- Response Models (Output) ---


class PrincipalSummary(BaseModel):
    """Principal fields returned together with a freshly issued token."""

    id: str
    username: str
    email: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AuthTokenResponse(BaseModel):
    """Body of a successful OAuth callback."""

    token: str
    token_type: str = "bearer"
    expires_in: int
    principal: PrincipalSummary


class PrincipalResponse(BaseModel):
    """Public fields of the current principal."""

    id: str
    provider: str
    username: str
    displayName: str | None = None  # noqa: N815
    email: str | None = None
    avatarUrl: str | None = None  # noqa: N815
    lastLogin: datetime  # noqa: N815
    createdAt: datetime  # noqa: N815

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    message: str
