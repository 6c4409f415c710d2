"""
FastAPI dependency injection.
Provides DB sessions, the blob store, API key validation and the acting principal.
"""

import uuid
from typing import AsyncIterator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from qaflow.config import settings
from qaflow.models.database import get_session
from qaflow.models.tables import User
from qaflow.observability.logging import bind_request_context
from qaflow.storage.blob_store import BlobStore, create_blob_store
from qaflow.workflow.identity import Principal


# ── Singleton instances ──────────────────────────────────────
_blob_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    """Get or create the blob store singleton."""
    global _blob_store
    if _blob_store is None:
        _blob_store = create_blob_store()
    return _blob_store


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield an async DB session."""
    async for session in get_session():
        yield session


async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Optional[str]:
    """
    Verify API key if configured.
    If API_KEY is not set, all requests are allowed (dev mode).
    """
    if settings.API_KEY is None:
        return None

    if x_api_key is None or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return x_api_key


async def get_current_principal(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    session: AsyncSession = Depends(get_db),
) -> Principal:
    """
    Resolve the already-authenticated caller from the X-User-Id header.
    Name and role always come from the users table, never from the request.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-User-Id header")

    user = await session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")

    bind_request_context(user_id=str(user.id), role=user.role)
    return Principal(id=user.id, name=user.name, role=user.role)


def require_roles(*roles: str):
    """Route-level role gate."""

    async def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Your role cannot access this resource",
            )
        return principal

    return _check
