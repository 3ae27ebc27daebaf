"""Manual-payment enrollment requests.

A student submits a transaction id and a screenshot for a published
course; an admin approves (the enrollment becomes ACTIVE) or rejects
(the enrollment is left as it is).
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.models import (
    Course, CourseStatus, Enrollment, EnrollmentRequest, EnrollmentRequestStatus, EnrollmentStatus,
)
from lms.errors import BadRequestError, ConflictError, NotFoundError
from lms.models.enrollment import EnrollmentRequestCreate

from .enrollment_service import find_enrollment

logger = logging.getLogger("enrollment_request_service")


async def create_request(session: AsyncSession, user_id: int, data: EnrollmentRequestCreate) -> EnrollmentRequest:
    result = await session.execute(
        select(Course).filter(
            Course.id == data.course_id,
            Course.is_deleted.is_(False),
            Course.status == CourseStatus.PUBLISHED,
        )
    )
    if not result.scalars().first():
        raise NotFoundError("Course not found.")

    enrollment = await find_enrollment(session, user_id, data.course_id)
    if enrollment and enrollment.status == EnrollmentStatus.ACTIVE:
        raise ConflictError("You are already enrolled in this course.")

    pending = await session.execute(
        select(EnrollmentRequest).filter(
            EnrollmentRequest.user_id == user_id,
            EnrollmentRequest.course_id == data.course_id,
            EnrollmentRequest.status == EnrollmentRequestStatus.PENDING,
        )
    )
    if pending.scalars().first():
        raise ConflictError("You already have a pending enrollment request for this course.")

    request = EnrollmentRequest(
        user_id=user_id,
        course_id=data.course_id,
        payment_method=data.payment_method,
        transaction_id=data.transaction_id,
        screenshot_url=data.screenshot_url,
        status=EnrollmentRequestStatus.PENDING,
    )
    session.add(request)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("You already have a pending enrollment request for this course.")

    logger.info(f"Enrollment request {request.id} created by user {user_id} for course {data.course_id}")
    return request


async def list_requests(session: AsyncSession, status: Optional[EnrollmentRequestStatus] = None) -> List[EnrollmentRequest]:
    query = select(EnrollmentRequest).order_by(EnrollmentRequest.created_at.desc(), EnrollmentRequest.id.desc())
    if status is not None:
        query = query.filter(EnrollmentRequest.status == status)
    result = await session.execute(query)
    return result.scalars().all()


async def _get_pending_request(session: AsyncSession, request_id: int) -> EnrollmentRequest:
    request = await session.get(EnrollmentRequest, request_id)
    if not request:
        raise NotFoundError("Enrollment request not found.")
    if request.status != EnrollmentRequestStatus.PENDING:
        raise BadRequestError(f"Request has already been {request.status.value.lower()}.")
    return request


async def approve(session: AsyncSession, request_id: int, admin_note: Optional[str] = None) -> EnrollmentRequest:
    for attempt in range(2):
        request = await _get_pending_request(session, request_id)
        try:
            request.status = EnrollmentRequestStatus.APPROVED
            request.admin_note = admin_note

            # upsert: create ACTIVE, flip PENDING/CANCELLED, or leave ACTIVE alone
            enrollment = await find_enrollment(session, request.user_id, request.course_id)
            if enrollment is None:
                session.add(Enrollment(user_id=request.user_id, course_id=request.course_id, status=EnrollmentStatus.ACTIVE))
            elif enrollment.status != EnrollmentStatus.ACTIVE:
                enrollment.status = EnrollmentStatus.ACTIVE
            await session.commit()
            break
        except IntegrityError:
            await session.rollback()
            if attempt:
                raise
            # the enrollment was created concurrently; the retry flips it instead
            logger.warning(f"Enrollment for request {request_id} appeared during approval, retrying")
        except Exception:
            await session.rollback()
            raise

    logger.info(f"Enrollment request {request_id} approved; user {request.user_id} active in course {request.course_id}")
    return request


async def reject(session: AsyncSession, request_id: int, admin_note: Optional[str] = None) -> EnrollmentRequest:
    request = await _get_pending_request(session, request_id)
    request.status = EnrollmentRequestStatus.REJECTED
    request.admin_note = admin_note
    await session.commit()
    logger.info(f"Enrollment request {request_id} rejected")
    return request
