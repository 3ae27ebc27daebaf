import logging
from typing import Dict, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.models import Course, CourseStatus, Enrollment, EnrollmentStatus, Payment, PaymentStatus
from lms.errors import BadRequestError, ConflictError, NotFoundError

from . import notification_service
from .enrollment_service import find_enrollment

logger = logging.getLogger("payment_service")


async def _get_published_course(session: AsyncSession, course_id: int) -> Course:
    result = await session.execute(
        select(Course).filter(
            Course.id == course_id,
            Course.is_deleted.is_(False),
            Course.status == CourseStatus.PUBLISHED,
        )
    )
    course = result.scalars().first()
    if not course:
        raise NotFoundError("Course not found or not published.")
    return course


async def get_payment_link(session: AsyncSession, course_id: int) -> Dict:
    course = await _get_published_course(session, course_id)
    amount = course.discount_price if course.discount_price is not None else course.price
    return {
        "course_id": course.id,
        "course_title": course.title,
        "amount": amount,
        "bkash_number": course.bkash_number,
        "nagad_number": course.nagad_number,
    }


async def _find_pending_payment(session: AsyncSession, user_id: int, course_id: int) -> Optional[Payment]:
    result = await session.execute(
        select(Payment).filter(
            Payment.user_id == user_id,
            Payment.course_id == course_id,
            Payment.status == PaymentStatus.PENDING,
        )
    )
    return result.scalars().first()


async def upload_slip(session: AsyncSession, user_id: int, course_id: int, slip_url: str) -> Payment:
    await _get_published_course(session, course_id)

    if await _find_pending_payment(session, user_id, course_id):
        raise ConflictError("You already have a pending payment for this course.")

    enrollment = await find_enrollment(session, user_id, course_id)
    if enrollment and enrollment.status == EnrollmentStatus.ACTIVE:
        raise ConflictError("You are already enrolled in this course.")

    payment = Payment(user_id=user_id, course_id=course_id, slip_url=slip_url, status=PaymentStatus.PENDING)
    try:
        session.add(payment)
        if enrollment is None:
            session.add(Enrollment(user_id=user_id, course_id=course_id, status=EnrollmentStatus.PENDING))
        elif enrollment.status == EnrollmentStatus.CANCELLED:
            # a rejected student may pay again
            enrollment.status = EnrollmentStatus.PENDING
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.warning(f"Concurrent slip upload for user={user_id} course={course_id}")
        raise ConflictError("You already have a pending payment for this course.")
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Payment {payment.id} uploaded by user {user_id} for course {course_id}")
    return payment


async def list_pending_payments(session: AsyncSession) -> List[Payment]:
    result = await session.execute(
        select(Payment).filter(Payment.status == PaymentStatus.PENDING).order_by(Payment.created_at, Payment.id)
    )
    return result.scalars().all()


async def _get_pending_payment(session: AsyncSession, payment_id: int) -> Payment:
    payment = await session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("Payment not found.")
    if payment.status != PaymentStatus.PENDING:
        raise BadRequestError(f"Payment has already been {payment.status.value.lower()}.")
    return payment


async def _review(
    session: AsyncSession,
    payment_id: int,
    admin_id: int,
    payment_status: PaymentStatus,
    enrollment_status: EnrollmentStatus,
    admin_note: Optional[str],
) -> Payment:
    payment = await _get_pending_payment(session, payment_id)
    try:
        payment.status = payment_status
        payment.reviewed_by_id = admin_id
        if admin_note is not None:
            payment.admin_note = admin_note

        enrollment = await find_enrollment(session, payment.user_id, payment.course_id)
        if enrollment is None:
            session.add(Enrollment(user_id=payment.user_id, course_id=payment.course_id, status=enrollment_status))
        else:
            enrollment.status = enrollment_status
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return payment


async def verify_payment(
    session: AsyncSession,
    payment_id: int,
    admin_id: int,
    background_tasks: BackgroundTasks,
    admin_note: Optional[str] = None,
) -> Payment:
    payment = await _review(
        session, payment_id, admin_id, PaymentStatus.VERIFIED, EnrollmentStatus.ACTIVE, admin_note
    )
    logger.info(f"Payment {payment_id} verified by admin {admin_id}; enrollment activated")

    background_tasks.add_task(notification_service.fire_enrollment_activated, payment.user_id, payment.course_id)
    return payment


async def reject_payment(
    session: AsyncSession,
    payment_id: int,
    admin_id: int,
    background_tasks: BackgroundTasks,
    admin_note: Optional[str] = None,
) -> Payment:
    payment = await _review(
        session, payment_id, admin_id, PaymentStatus.REJECTED, EnrollmentStatus.CANCELLED, admin_note
    )
    logger.info(f"Payment {payment_id} rejected by admin {admin_id}; enrollment cancelled")

    background_tasks.add_task(notification_service.fire_payment_rejected, payment.user_id, payment.course_id)
    return payment
