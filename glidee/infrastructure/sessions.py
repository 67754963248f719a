"""
Session resolution.

Sessions are issued elsewhere (the sign-in service writes rows into
``sessions``); this module only turns a presented token into the caller
context that operations receive.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .repositories import SessionRepository
from glidee.domain.access import CallerContext
from glidee.domain.clock import utcnow
from glidee.domain.enums import UserRole

logger = logging.getLogger(__name__)


class SessionAuthenticator:
    def __init__(self, session: AsyncSession):
        self.sessions = SessionRepository(session)

    async def resolve(self, token: Optional[str]) -> Optional[CallerContext]:
        """Caller for *token*, or ``None`` when missing, unknown or expired."""
        if not token:
            return None
        user = await self.sessions.get_user_for_token(token, utcnow())
        if user is None:
            return None
        return CallerContext(
            user_id=user.id,
            role=UserRole(user.role),
            name=user.name,
            email=user.email,
        )

    async def try_resolve(self, token: Optional[str]) -> Optional[CallerContext]:
        """Like ``resolve`` but degrades to unauthenticated on store errors."""
        try:
            return await self.resolve(token)
        except SQLAlchemyError:
            logger.warning("Session lookup failed; continuing unauthenticated", exc_info=True)
            return None
