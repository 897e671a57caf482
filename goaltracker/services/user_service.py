"""
Principal resolution for OAuth logins.

This module maps an identity provider profile to a local User record,
creating the record on the first login of a provider identity and refreshing
it on every later one.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from prisma.errors import UniqueViolationError

from ..core.oauth import ProviderProfile

if TYPE_CHECKING:
    from prisma import Prisma
    from prisma.models import User

logger = logging.getLogger(__name__)


def placeholder_email(profile: ProviderProfile) -> str:
    """Synthesized address used when the provider does not expose one."""
    return f"{profile.username}@{profile.provider}.local"


def _identity_where(profile: ProviderProfile) -> dict:
    return {"provider": profile.provider, "providerId": profile.subject_id}


async def get_principal(db: "Prisma", principal_id: str) -> "User | None":
    """Load a principal by local id."""
    return await db.user.find_unique(where={"id": principal_id})


async def resolve_principal(
    db: "Prisma", profile: ProviderProfile, now: datetime | None = None
) -> "User":
    """
    Get the local principal for a provider profile, creating it on first sight.

    The flow:
    1. Look up the user by (provider, providerId)
    2. If found, refresh lastLogin and the profile fields (returning login)
    3. If not found, create the user; a missing email is replaced by
       "{username}@{provider}.local" instead of failing the signup
    4. If the create hits the unique constraint, another request created the
       same identity concurrently, so re-read and continue as step 2

    Args:
        db: Database client dependency
        profile: Profile returned by the identity provider
        now: Login time, defaults to the current UTC time

    Returns:
        User: The existing or newly created user
    """
    now = now or datetime.now(UTC)

    existing_user = await db.user.find_first(where=_identity_where(profile))
    if existing_user:
        return await _record_login(db, existing_user, profile, now)

    try:
        new_user = await db.user.create(
            data={
                "provider": profile.provider,
                "providerId": profile.subject_id,
                "username": profile.username,
                "displayName": profile.display_name,
                "email": profile.email or placeholder_email(profile),
                "avatarUrl": profile.avatar_url,
                "lastLogin": now,
            }
        )
    except UniqueViolationError:
        logger.info(
            "Concurrent first login detected, re-reading principal",
            extra={"provider": profile.provider, "subject_id": profile.subject_id},
        )
        winner = await db.user.find_first(where=_identity_where(profile))
        if winner is None:
            # The constraint fired, so the row must exist; anything else is a storage fault
            raise
        return await _record_login(db, winner, profile, now)

    logger.info(
        "Principal created",
        extra={
            "user_id": new_user.id,
            "provider": profile.provider,
            "subject_id": profile.subject_id,
            "email_synthesized": profile.email is None,
        },
    )
    return new_user


async def _record_login(
    db: "Prisma", user: "User", profile: ProviderProfile, now: datetime
) -> "User":
    data = {
        "lastLogin": now,
        "username": profile.username,
        "displayName": profile.display_name,
        "avatarUrl": profile.avatar_url,
    }
    # Never downgrade a stored address to a placeholder
    if profile.email:
        data["email"] = profile.email

    updated_user = await db.user.update(where={"id": user.id}, data=data)
    logger.info(
        "Principal login recorded",
        extra={"user_id": user.id, "provider": profile.provider},
    )
    return updated_user or user
