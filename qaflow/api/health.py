"""
Health check endpoints.
/health always returns 200; DB connectivity is reported, not enforced.
"""

from fastapi import APIRouter
from sqlalchemy import text

from qaflow.config import settings
from qaflow.models.database import get_session_factory

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Liveness: the API is up. Also reports whether the database answers."""
    db_ok = False
    db_error = None
    try:
        async with get_session_factory()() as session:
            result = await session.execute(text("SELECT 1"))
            db_ok = result.scalar() == 1
    except Exception as e:
        db_ok = False
        db_error = str(e)[:200]

    response = {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.APP_VERSION,
        "database": "connected" if db_ok else "unreachable",
        "blob_backend": settings.BLOB_BACKEND,
    }
    if db_error:
        response["database_error"] = db_error

    return response


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: ready only if the database answers."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
            return {"ready": True}
    except Exception:
        return {"ready": False}
