"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from glidee.config import settings
from glidee.domain.access import CallerContext, require_caller
from glidee.domain.enums import SeatLockMode
from glidee.infrastructure.database import async_session_factory
from glidee.infrastructure.locks import NullSeatGuard, RedisSeatGuard
from glidee.infrastructure.redis_client import get_redis
from glidee.infrastructure.sessions import SessionAuthenticator
from glidee.services.booking import BookingAllocator


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def session_token(request: Request) -> Optional[str]:
    """Bearer token if present, else the session cookie."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return request.cookies.get(settings.session_cookie_name)


async def get_optional_caller(
    request: Request, db: AsyncSession = Depends(get_db)
) -> Optional[CallerContext]:
    """Caller for the request, or ``None``; never raises."""
    return await SessionAuthenticator(db).try_resolve(session_token(request))


async def get_caller(
    request: Request, db: AsyncSession = Depends(get_db)
) -> CallerContext:
    """Resolve the caller once per request; 401 when there is no valid session."""
    caller = await SessionAuthenticator(db).resolve(session_token(request))
    return require_caller(caller)


async def get_booking_allocator(db: AsyncSession = Depends(get_db)) -> BookingAllocator:
    mode = settings.seat_lock
    guard = NullSeatGuard()
    if mode is SeatLockMode.REDIS:
        guard = RedisSeatGuard(
            await get_redis(),
            ttl_seconds=settings.seat_lock_ttl_seconds,
            wait_seconds=settings.seat_lock_wait_seconds,
        )
    return BookingAllocator(db, seat_lock=mode, guard=guard)
