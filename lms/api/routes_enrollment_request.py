from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.database import get_async_session
from lms.db.models import EnrollmentRequestStatus, User
from lms.models.common import Envelope, ok
from lms.models.enrollment import AdminAction, EnrollmentRequestCreate, EnrollmentRequestOut
from lms.security import require_admin, require_student
from lms.services import enrollment_request_service
from lms.services.audit_service import record_admin_action

request_router = APIRouter(tags=["Enrollment Requests"])
admin_request_router = APIRouter(tags=["Enrollment Requests (Admin)"])


@request_router.post("", response_model=Envelope[EnrollmentRequestOut], status_code=201)
async def create_request(
    data: EnrollmentRequestCreate,
    user: User = Depends(require_student),
    session: AsyncSession = Depends(get_async_session),
):
    request = await enrollment_request_service.create_request(session, user.id, data)
    return ok(request, "Enrollment request submitted. Waiting for admin approval.")


@admin_request_router.get("", response_model=Envelope[List[EnrollmentRequestOut]])
async def list_requests(
    status: Optional[EnrollmentRequestStatus] = None,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await enrollment_request_service.list_requests(session, status))


@admin_request_router.patch("/{request_id}/approve", response_model=Envelope[EnrollmentRequestOut])
async def approve_request(
    request_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[AdminAction] = Body(default=None),
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    request = await enrollment_request_service.approve(session, request_id, data.admin_note if data else None)
    record_admin_action(background_tasks, user, "APPROVE_ENROLLMENT_REQUEST", "EnrollmentRequest", request_id)
    return ok(request, "Enrollment request approved")


@admin_request_router.patch("/{request_id}/reject", response_model=Envelope[EnrollmentRequestOut])
async def reject_request(
    request_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[AdminAction] = Body(default=None),
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    request = await enrollment_request_service.reject(session, request_id, data.admin_note if data else None)
    record_admin_action(background_tasks, user, "REJECT_ENROLLMENT_REQUEST", "EnrollmentRequest", request_id)
    return ok(request, "Enrollment request rejected")
