# goaltracker/core/database.py
import logging
from typing import TYPE_CHECKING

from ..config import Settings, get_settings

if TYPE_CHECKING:
    from prisma import Prisma

logger = logging.getLogger(__name__)

# 1. Shared Database Instance
# Created on first use so importing the app never requires a generated client
_db: "Prisma | None" = None


def client_options(settings: Settings) -> dict:
    """Prisma constructor arguments for the given settings."""
    if settings.DATABASE_URL:
        return {"datasource": {"url": settings.DATABASE_URL}}
    return {}


def get_client(settings: Settings | None = None) -> "Prisma":
    global _db
    if _db is None:
        from prisma import Prisma

        _db = Prisma(**client_options(settings or get_settings()))
    return _db


# 2. Connection Function (for Startup)
async def connect_db(settings: Settings | None = None) -> None:
    db = get_client(settings)
    if not db.is_connected():
        await db.connect()
        logger.info("Database connected")


# 3. Disconnect Function (for Shutdown)
async def disconnect_db() -> None:
    if _db is not None and _db.is_connected():
        await _db.disconnect()
        logger.info("Database disconnected")


async def check_db_health() -> str:
    """Return "connected" or "disconnected" without raising."""
    if _db is None or not _db.is_connected():
        return "disconnected"
    try:
        await _db.user.count()
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return "disconnected"
    return "connected"


# 4. Request Dependency
async def get_db() -> "Prisma":
    """Get database client dependency."""
    return get_client()
