from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.database import get_async_session
from lms.db.models import User
from lms.models.common import Envelope, ok
from lms.models.enrollment import AdminEnroll, EnrollmentOut, MyEnrollmentOut
from lms.security import get_current_user, require_admin
from lms.services import enrollment_service
from lms.services.audit_service import record_admin_action

router = APIRouter(tags=["Enrollments"])


@router.post("/admin/enroll", response_model=Envelope[EnrollmentOut], status_code=201)
async def admin_enroll(
    data: AdminEnroll,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    enrollment = await enrollment_service.enroll_student(session, user.id, data.student_id, data.course_id)
    record_admin_action(background_tasks, user, "ENROLL_STUDENT", "Enrollment", enrollment.id)
    return ok(enrollment, "Student enrolled successfully")


@router.get("/my", response_model=Envelope[List[MyEnrollmentOut]])
async def my_enrollments(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_async_session)):
    return ok(await enrollment_service.get_my_enrollments(session, user.id))


@router.get("/course/{course_id}", response_model=Envelope[List[EnrollmentOut]])
async def course_enrollments(
    course_id: int,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await enrollment_service.list_course_enrollments(session, course_id, user))


@router.post("/{course_id}", response_model=Envelope[EnrollmentOut], status_code=201)
async def enroll(course_id: int, user: User = Depends(get_current_user), session: AsyncSession = Depends(get_async_session)):
    return ok(await enrollment_service.enroll_self(session, user.id, course_id), "Enrollment created")


@router.patch("/{enrollment_id}/activate", response_model=Envelope[EnrollmentOut])
async def activate(
    enrollment_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    enrollment = await enrollment_service.activate(session, enrollment_id, background_tasks)
    record_admin_action(background_tasks, user, "ACTIVATE_ENROLLMENT", "Enrollment", enrollment_id)
    return ok(enrollment, "Enrollment activated")


@router.patch("/{enrollment_id}/cancel", response_model=Envelope[EnrollmentOut])
async def cancel(
    enrollment_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    enrollment = await enrollment_service.cancel(session, enrollment_id)
    record_admin_action(background_tasks, user, "CANCEL_ENROLLMENT", "Enrollment", enrollment_id)
    return ok(enrollment, "Enrollment cancelled")
