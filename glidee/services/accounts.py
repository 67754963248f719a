"""Parent students and user profiles."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from glidee.domain.access import CallerContext, authorize
from glidee.domain.enums import UserRole
from glidee.domain.errors import Unauthorized
from glidee.infrastructure.models import StudentModel, UserModel
from glidee.infrastructure.repositories import StudentRepository, UserRepository

logger = logging.getLogger(__name__)


@authorize(UserRole.PARENT)
async def add_student(
    session: AsyncSession,
    caller: CallerContext,
    name: str,
    school_name: str,
    grade: str,
    photo_url: Optional[str] = None,
) -> StudentModel:
    student = await StudentRepository(session).create(
        StudentModel(
            parent_id=caller.user_id,
            name=name,
            school_name=school_name,
            grade=grade,
            photo_url=photo_url,
        )
    )
    logger.info("Parent %s added student %s", caller.user_id, student.id)
    return student


@authorize()
async def parent_students(session: AsyncSession, caller: CallerContext) -> list[StudentModel]:
    return await StudentRepository(session).list_for_parent(caller.user_id)


@authorize()
async def update_profile(
    session: AsyncSession,
    caller: CallerContext,
    name: str,
    image: Optional[str] = None,
) -> UserModel:
    user = await UserRepository(session).get_by_id(caller.user_id)
    if user is None:
        # Session outlived its user
        raise Unauthorized("Unauthorized: Please sign in")
    user.name = name
    user.image = image or None
    await session.flush()
    return user


async def current_session(
    session: AsyncSession, caller: Optional[CallerContext]
) -> Optional[UserModel]:
    """The signed-in user, or ``None``; never raises for a missing caller."""
    if caller is None:
        return None
    return await UserRepository(session).get_by_id(caller.user_id)
