import logging
from typing import List

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.models import Assignment, AssignmentSubmission, Course, Quiz, User
from lms.errors import ConflictError, NotFoundError
from lms.models.course import AssignmentUpdate, QuizUpdate

from . import notification_service
from .ownership import Resource, authorize_mutation, ensure_can_read, resolve_owner

logger = logging.getLogger("assessment_service")


async def update_quiz(session: AsyncSession, quiz_id: int, data: QuizUpdate, user: User) -> Quiz:
    await authorize_mutation(session, Resource.QUIZ, quiz_id, user)
    quiz = await session.get(Quiz, quiz_id)
    quiz.title = data.title
    await session.commit()
    return quiz


async def get_quiz_for_lesson(session: AsyncSession, lesson_id: int, user: User) -> Quiz:
    info = await resolve_owner(session, Resource.LESSON, lesson_id)
    await ensure_can_read(session, info.course_id, user)

    result = await session.execute(select(Quiz).filter(Quiz.lesson_id == lesson_id))
    quiz = result.scalars().first()
    if not quiz:
        raise NotFoundError("Quiz not found.")
    return quiz


async def update_assignment(session: AsyncSession, assignment_id: int, data: AssignmentUpdate, user: User) -> Assignment:
    await authorize_mutation(session, Resource.ASSIGNMENT, assignment_id, user)
    assignment = await session.get(Assignment, assignment_id)
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(assignment, field, value)
    await session.commit()
    return assignment


async def submit_assignment(
    session: AsyncSession,
    assignment_id: int,
    file_url: str,
    user: User,
    background_tasks: BackgroundTasks,
) -> AssignmentSubmission:
    info = await resolve_owner(session, Resource.ASSIGNMENT, assignment_id)
    await ensure_can_read(session, info.course_id, user)

    submission = AssignmentSubmission(assignment_id=assignment_id, user_id=user.id, file_url=file_url)
    session.add(submission)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("You have already submitted this assignment.")

    logger.info(f"User {user.id} submitted assignment {assignment_id}")

    assignment = await session.get(Assignment, assignment_id)
    course = await session.get(Course, info.course_id)
    background_tasks.add_task(
        notification_service.fire_assignment_submitted,
        user.id,
        info.owner_id,
        assignment.title,
        course.title,
    )
    return submission


async def list_submissions(session: AsyncSession, assignment_id: int, user: User) -> List[AssignmentSubmission]:
    await authorize_mutation(session, Resource.ASSIGNMENT, assignment_id, user)
    result = await session.execute(
        select(AssignmentSubmission)
        .filter(AssignmentSubmission.assignment_id == assignment_id)
        .order_by(AssignmentSubmission.submitted_at)
    )
    return result.scalars().all()
