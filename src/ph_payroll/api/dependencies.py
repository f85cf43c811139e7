"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ph_payroll.config import Settings, get_settings
from ph_payroll.database import init_db


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that opens its own transactions."""
    _, factory = init_db()
    return factory


async def get_db_session(
    factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_actor_id(x_user_id: Annotated[str | None, Header()] = None) -> UUID | None:
    """Extract the acting user from the X-User-ID header."""
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
ActorId = Annotated[UUID | None, Depends(get_actor_id)]
AppSettings = Annotated[Settings, Depends(get_settings)]
