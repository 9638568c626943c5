"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and
the database is reachable. Redis is reported but optional: without
it the service still works, only rate limiting is off, so a missing
Redis does not make the service "degraded".
"""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort import __version__
from streamshort.db.engine import get_db
from streamshort.db.redis_pool import get_redis

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        logger.warning("health.database_error", error=str(e))
        checks["database"] = "error"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except RuntimeError:
        checks["redis"] = "disabled"
    except Exception as e:
        logger.warning("health.redis_error", error=str(e))
        checks["redis"] = "error"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}
