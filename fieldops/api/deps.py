"""
FastAPI dependencies shared by the field service routes.

``DBSession`` gives each request an ``AsyncSession`` inside one transaction.
``CurrentUser`` resolves the bearer token to an active ``User`` or answers
401 with a ``WWW-Authenticate: Bearer`` challenge.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated, Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fieldops.core.config import settings
from fieldops.models.user import User

# ---------------------------------------------------------------------------
# Engine & sessions
# ---------------------------------------------------------------------------

def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.sql_echo}
    # SQLite pools take no sizing arguments
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; committed when the handler returns, rolled
    back if it raises."""
    async with async_session_factory() as session:
        async with session.begin():
            yield session


DBSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

_bearer_scheme = HTTPBearer(auto_error=False, description="Access token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    db: DBSession,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(_bearer_scheme)],
) -> User:
    from fieldops.services import auth_service

    if credentials is None:
        raise _unauthorized("Missing bearer token.")
    try:
        return await auth_service.get_current_user(db, credentials.credentials)
    except ValueError as exc:
        raise _unauthorized(str(exc))


CurrentUser = Annotated[User, Depends(get_current_user)]
