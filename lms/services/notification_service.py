import logging
from typing import Dict, List, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db import database
from lms.db.models import Course, Notification, User
from lms.errors import ForbiddenError, NotFoundError

from . import mail_service

logger = logging.getLogger("notification_service")


def _display_name(user: User) -> str:
    return user.name or user.email


async def create_notification(session: AsyncSession, user_id: int, title: str, message: str) -> Notification:
    notification = Notification(user_id=user_id, title=title, message=message)
    session.add(notification)
    await session.commit()
    return notification


async def get_user_notifications(session: AsyncSession, user_id: int) -> Tuple[List[Notification], int]:
    result = await session.execute(
        select(Notification).filter(Notification.user_id == user_id).order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    notifications = result.scalars().all()
    unread = await session.execute(
        select(func.count()).select_from(Notification).filter(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return notifications, unread.scalar_one()


async def mark_as_read(session: AsyncSession, notification_id: int, requester_id: int) -> Notification:
    notification = await session.get(Notification, notification_id)
    if not notification:
        raise NotFoundError(f'Notification with id "{notification_id}" not found.')
    if notification.user_id != requester_id:
        raise ForbiddenError("You are not allowed to update this notification.")
    notification.is_read = True
    await session.commit()
    return notification


async def mark_all_as_read(session: AsyncSession, user_id: int) -> Dict[str, int]:
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return {"count": result.rowcount}


# --- Events ---

async def on_enrollment_activated(session: AsyncSession, student: User, course: Course):
    await create_notification(
        session,
        student.id,
        "Enrollment Activated",
        f'Your enrollment in "{course.title}" has been activated. Happy learning!',
    )
    await mail_service.send_mail(
        student.email,
        f'Your enrollment in "{course.title}" is now active',
        f"Hi {_display_name(student)},\n\nYou now have full access to \"{course.title}\".",
    )
    logger.info(f"[ENROLLMENT_ACTIVATED] student={student.id} course={course.id}")


async def on_payment_rejected(session: AsyncSession, student: User, course: Course):
    await create_notification(
        session,
        student.id,
        "Payment Rejected",
        f'Your payment for "{course.title}" could not be verified. Please upload a valid payment slip.',
    )
    await mail_service.send_mail(
        student.email,
        f'Payment for "{course.title}" was rejected',
        f"Hi {_display_name(student)},\n\nWe could not verify your payment for \"{course.title}\". "
        "You can upload a new payment slip from the course page.",
    )
    logger.info(f"[PAYMENT_REJECTED] student={student.id} course={course.id}")


async def on_assignment_submitted(session: AsyncSession, student: User, admin: User, assignment_title: str, course_title: str):
    await create_notification(
        session,
        student.id,
        "Assignment Submitted",
        f'Your assignment "{assignment_title}" has been received. Our instructors will review it shortly.',
    )
    await create_notification(
        session,
        admin.id,
        "New Assignment Submission",
        f'{_display_name(student)} submitted assignment "{assignment_title}" for course "{course_title}".',
    )
    await mail_service.send_mail(
        student.email,
        f'Assignment "{assignment_title}" submitted successfully',
        f"Hi {_display_name(student)},\n\nYour submission for \"{assignment_title}\" ({course_title}) was received.",
    )
    await mail_service.send_mail(
        admin.email,
        f"[Action Required] New assignment submission from {_display_name(student)}",
        f"{_display_name(student)} ({student.email}) submitted \"{assignment_title}\" for \"{course_title}\".",
    )
    logger.info(f"[ASSIGNMENT_SUBMITTED] student={student.id} assignment={assignment_title}")


# --- Fire-and-forget entry points (run from BackgroundTasks, own session, never raise) ---

async def fire_enrollment_activated(user_id: int, course_id: int):
    try:
        async with database.AsyncSessionLocal() as session:
            student = await session.get(User, user_id)
            course = await session.get(Course, course_id)
            if student and course:
                await on_enrollment_activated(session, student, course)
    except Exception as err:
        logger.error(f"[fire_enrollment_activated] {err}")


async def fire_payment_rejected(user_id: int, course_id: int):
    try:
        async with database.AsyncSessionLocal() as session:
            student = await session.get(User, user_id)
            course = await session.get(Course, course_id)
            if student and course:
                await on_payment_rejected(session, student, course)
    except Exception as err:
        logger.error(f"[fire_payment_rejected] {err}")


async def fire_assignment_submitted(student_id: int, admin_id: int, assignment_title: str, course_title: str):
    try:
        async with database.AsyncSessionLocal() as session:
            student = await session.get(User, student_id)
            admin = await session.get(User, admin_id)
            if student and admin:
                await on_assignment_submitted(session, student, admin, assignment_title, course_title)
    except Exception as err:
        logger.error(f"[fire_assignment_submitted] {err}")
