import logging
from typing import Dict, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.models import Course, CourseStatus, Enrollment, EnrollmentStatus, User
from lms.errors import BadRequestError, ConflictError, NotFoundError

from . import notification_service
from .ownership import Resource, authorize_mutation

logger = logging.getLogger("enrollment_service")


async def get_enrollable_course(session: AsyncSession, course_id: int) -> Course:
    result = await session.execute(
        select(Course).filter(Course.id == course_id, Course.is_deleted.is_(False))
    )
    course = result.scalars().first()
    if not course:
        raise NotFoundError("Course not found.")
    if course.status != CourseStatus.PUBLISHED:
        raise BadRequestError("Cannot enroll in an unpublished course.")
    return course


async def find_enrollment(session: AsyncSession, user_id: int, course_id: int) -> Optional[Enrollment]:
    result = await session.execute(
        select(Enrollment).filter(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
    )
    return result.scalars().first()


async def _create_enrollment(session: AsyncSession, enrollment: Enrollment, conflict_message: str) -> Enrollment:
    session.add(enrollment)
    try:
        await session.commit()
    except IntegrityError:
        # lost a race against another request for the same (user, course)
        await session.rollback()
        raise ConflictError(conflict_message)
    return enrollment


async def enroll_self(session: AsyncSession, user_id: int, course_id: int) -> Enrollment:
    await get_enrollable_course(session, course_id)

    if await find_enrollment(session, user_id, course_id):
        logger.warning(f"User {user_id} already enrolled in course {course_id}")
        raise ConflictError("You are already enrolled in this course.")

    enrollment = await _create_enrollment(
        session,
        Enrollment(user_id=user_id, course_id=course_id, status=EnrollmentStatus.PENDING),
        "You are already enrolled in this course.",
    )
    logger.info(f"Created enrollment id={enrollment.id} user={user_id} course={course_id} status=PENDING")
    return enrollment


async def enroll_student(session: AsyncSession, admin_id: int, student_id: int, course_id: int) -> Enrollment:
    await get_enrollable_course(session, course_id)

    if not await session.get(User, student_id):
        raise NotFoundError("Student not found.")

    if await find_enrollment(session, student_id, course_id):
        raise ConflictError("Student is already enrolled in this course.")

    enrollment = await _create_enrollment(
        session,
        Enrollment(
            user_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.PENDING,
            enrolled_by_id=admin_id,
        ),
        "Student is already enrolled in this course.",
    )
    logger.info(f"Admin {admin_id} enrolled user {student_id} in course {course_id} (enrollment {enrollment.id})")
    return enrollment


async def _get_enrollment(session: AsyncSession, enrollment_id: int) -> Enrollment:
    enrollment = await session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError("Enrollment not found.")
    return enrollment


async def activate(session: AsyncSession, enrollment_id: int, background_tasks: BackgroundTasks) -> Enrollment:
    enrollment = await _get_enrollment(session, enrollment_id)

    if enrollment.status == EnrollmentStatus.ACTIVE:
        raise BadRequestError("Enrollment is already active.")
    # once cancelled, the student has to pay again
    if enrollment.status == EnrollmentStatus.CANCELLED:
        raise BadRequestError("Cannot activate a cancelled enrollment.")

    enrollment.status = EnrollmentStatus.ACTIVE
    await session.commit()
    logger.info(f"Enrollment {enrollment_id} activated")

    background_tasks.add_task(notification_service.fire_enrollment_activated, enrollment.user_id, enrollment.course_id)
    return enrollment


async def cancel(session: AsyncSession, enrollment_id: int) -> Enrollment:
    enrollment = await _get_enrollment(session, enrollment_id)

    if enrollment.status == EnrollmentStatus.CANCELLED:
        raise BadRequestError("Enrollment is already cancelled.")

    enrollment.status = EnrollmentStatus.CANCELLED
    await session.commit()
    logger.info(f"Enrollment {enrollment_id} cancelled")
    return enrollment


async def get_my_enrollments(session: AsyncSession, user_id: int) -> List[Dict]:
    result = await session.execute(
        select(Enrollment)
        .filter(Enrollment.user_id == user_id, Enrollment.status == EnrollmentStatus.ACTIVE)
        .order_by(Enrollment.created_at)
    )
    return [{"course_id": e.course_id, "enrolled_at": e.created_at} for e in result.scalars().all()]


async def list_course_enrollments(session: AsyncSession, course_id: int, user: User) -> List[Enrollment]:
    await authorize_mutation(session, Resource.COURSE, course_id, user)
    result = await session.execute(
        select(Enrollment).filter(Enrollment.course_id == course_id).order_by(Enrollment.created_at)
    )
    return result.scalars().all()
