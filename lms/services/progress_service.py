import logging
from datetime import datetime
from typing import Dict

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.models import CourseModule, Lesson, LessonProgress
from lms.errors import ForbiddenError

from .ownership import Resource, find_active_enrollment, resolve_owner

logger = logging.getLogger("progress_service")


async def _find_progress(session: AsyncSession, user_id: int, lesson_id: int):
    result = await session.execute(
        select(LessonProgress).filter(LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson_id)
    )
    return result.scalars().first()


async def mark_lesson_complete(session: AsyncSession, user_id: int, lesson_id: int) -> LessonProgress:
    info = await resolve_owner(session, Resource.LESSON, lesson_id)
    if not await find_active_enrollment(session, user_id, info.course_id):
        raise ForbiddenError("You are not enrolled in this course. Please enroll to access this content.")

    now = datetime.utcnow()
    progress = await _find_progress(session, user_id, lesson_id)
    if progress is None:
        progress = LessonProgress(user_id=user_id, lesson_id=lesson_id, completed=True, last_watched_at=now)
        session.add(progress)
    else:
        progress.completed = True
        progress.last_watched_at = now

    try:
        await session.commit()
    except IntegrityError:
        # a concurrent request created the row first
        await session.rollback()
        progress = await _find_progress(session, user_id, lesson_id)
        progress.completed = True
        progress.last_watched_at = now
        await session.commit()

    return progress


async def get_course_progress(session: AsyncSession, user_id: int, course_id: int) -> Dict:
    total = await session.execute(
        select(func.count(Lesson.id))
        .join(CourseModule, Lesson.module_id == CourseModule.id)
        .filter(CourseModule.course_id == course_id)
    )
    total_lessons = total.scalar_one()

    completed = await session.execute(
        select(LessonProgress.lesson_id)
        .join(Lesson, LessonProgress.lesson_id == Lesson.id)
        .join(CourseModule, Lesson.module_id == CourseModule.id)
        .filter(
            CourseModule.course_id == course_id,
            LessonProgress.user_id == user_id,
            LessonProgress.completed.is_(True),
        )
        .order_by(LessonProgress.lesson_id)
    )
    completed_ids = list(completed.scalars().all())

    percentage = round(len(completed_ids) / total_lessons * 100) if total_lessons else 0
    return {
        "course_id": course_id,
        "completed_lessons": len(completed_ids),
        "total_lessons": total_lessons,
        "percentage": percentage,
        "completed_lesson_ids": completed_ids,
    }
