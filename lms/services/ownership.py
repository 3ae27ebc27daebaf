"""Who may touch a course and everything hanging off it.

Modules, lessons, quizzes and assignments have no owner of their own: they
belong to whoever created the course at the top of their chain. The chain
is resolved in one SELECT into an ``OwnershipInfo`` projection, so the
decision functions below never see ORM relationships.

- SUPER_ADMIN may mutate anything.
- ADMIN may mutate only resources of courses they created.
- Everyone else is refused (mutation routes are already role-guarded).
- Reads: ADMIN and SUPER_ADMIN always; a STUDENT needs an ACTIVE enrollment.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.database import get_async_session
from lms.db.models import (
    Assignment, Course, CourseModule, Enrollment, EnrollmentStatus, Lesson, Quiz, User, UserRole,
)
from lms.errors import ForbiddenError, NotFoundError
from lms.security import get_current_user

logger = logging.getLogger("ownership")


class Resource(str, enum.Enum):
    COURSE = "course"
    MODULE = "module"
    LESSON = "lesson"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"


@dataclass(frozen=True)
class OwnershipInfo:
    resource_id: int
    course_id: int
    owner_id: int


def _ownership_query(resource: Resource, resource_id: int):
    owner_cols = (Course.id.label("course_id"), Course.created_by_id.label("owner_id"))

    if resource == Resource.COURSE:
        return (
            select(Course.id.label("resource_id"), *owner_cols)
            .where(Course.id == resource_id, Course.is_deleted.is_(False))
        )
    if resource == Resource.MODULE:
        return (
            select(CourseModule.id.label("resource_id"), *owner_cols)
            .join(Course, CourseModule.course_id == Course.id)
            .where(CourseModule.id == resource_id)
        )
    if resource == Resource.LESSON:
        return (
            select(Lesson.id.label("resource_id"), *owner_cols)
            .join(CourseModule, Lesson.module_id == CourseModule.id)
            .join(Course, CourseModule.course_id == Course.id)
            .where(Lesson.id == resource_id)
        )

    side = Quiz if resource == Resource.QUIZ else Assignment
    return (
        select(side.id.label("resource_id"), *owner_cols)
        .join(Lesson, side.lesson_id == Lesson.id)
        .join(CourseModule, Lesson.module_id == CourseModule.id)
        .join(Course, CourseModule.course_id == Course.id)
        .where(side.id == resource_id)
    )


async def resolve_owner(session: AsyncSession, resource: Resource, resource_id: int) -> OwnershipInfo:
    row = (await session.execute(_ownership_query(resource, resource_id))).first()
    if row is None:
        raise NotFoundError(f"{resource.value.capitalize()} not found.")
    return OwnershipInfo(resource_id=row.resource_id, course_id=row.course_id, owner_id=row.owner_id)


def ensure_can_mutate(info: OwnershipInfo, user: User, resource: Resource) -> None:
    if user.role == UserRole.SUPER_ADMIN:
        return
    if user.role == UserRole.ADMIN and info.owner_id == user.id:
        return
    logger.warning(f"User {user.id} ({user.role.value}) denied on {resource.value} {info.resource_id}")
    raise ForbiddenError(f"You do not have permission to modify this {resource.value}.")


async def authorize_mutation(session: AsyncSession, resource: Resource, resource_id: int, user: User) -> OwnershipInfo:
    info = await resolve_owner(session, resource, resource_id)
    ensure_can_mutate(info, user, resource)
    return info


async def find_active_enrollment(session: AsyncSession, user_id: int, course_id: int) -> Optional[Enrollment]:
    result = await session.execute(
        select(Enrollment).filter(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id,
            Enrollment.status == EnrollmentStatus.ACTIVE,
        )
    )
    return result.scalars().first()


async def ensure_can_read(session: AsyncSession, course_id: int, user: User) -> None:
    if user.role in (UserRole.ADMIN, UserRole.SUPER_ADMIN):
        return
    if not await find_active_enrollment(session, user.id, course_id):
        raise ForbiddenError("You are not enrolled in this course. Please enroll to access this content.")


async def require_active_enrollment(
    course_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> User:
    """Enrollment guard for ``/courses/{course_id}/...`` read routes."""
    await ensure_can_read(db, course_id, user)
    return user
