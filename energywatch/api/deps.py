"""
FastAPI dependency injection providers.

Provides database sessions, the session factory for per-device fan-out,
application settings, the snapshot cache, and the authenticated user id
for use with FastAPI's Depends() mechanism.

CHANGELOG:
- 2026-10-14: Add session factory, settings and cache providers
- 2026-10-11: Initial creation
"""

import random
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from energywatch.cache.redis_client import SnapshotCache
from energywatch.config import Settings
from energywatch.db import session as db_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    async for session in db_session.get_async_session():
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory used to open one session per device."""
    return db_session.get_session_factory()


def get_settings(request: Request) -> Settings:
    """Return the settings validated at startup."""
    return request.app.state.settings


def get_cache(request: Request) -> SnapshotCache:
    """Return the snapshot cache built at startup."""
    return request.app.state.cache


def get_rng(request: Request) -> random.Random | None:
    """Return the random source for sample generation, if one is configured."""
    return getattr(request.app.state, "rng", None)


async def get_current_user(request: Request) -> str:
    """Extract the authenticated user_id via BearerAuth on app.state.

    This thin wrapper exists so that FastAPI's Depends() mechanism
    can call the BearerAuth.verify method stored on app.state.auth.

    Args:
        request: The incoming FastAPI request.

    Returns:
        str: The authenticated user_id.
    """
    return await request.app.state.auth.verify(request)


# Type aliases for route handler signatures.
DbSession = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[
    async_sessionmaker[AsyncSession], Depends(get_session_factory)
]
CurrentUser = Annotated[str, Depends(get_current_user)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Cache = Annotated[SnapshotCache, Depends(get_cache)]
Rng = Annotated[random.Random | None, Depends(get_rng)]
