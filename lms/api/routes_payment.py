from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.common.file_guard import verify_slip_file
from lms.common.rate_limit import RateLimiter
from lms.config import UPLOAD_SLIP_RATE_LIMIT, UPLOAD_SLIP_RATE_WINDOW_SECONDS
from lms.db.database import get_async_session
from lms.db.models import User
from lms.models.common import Envelope, ok
from lms.models.enrollment import AdminAction, PaymentLinkOut, PaymentOut, UploadSlip
from lms.security import get_current_user, require_admin
from lms.services import payment_service
from lms.services.audit_service import record_admin_action

router = APIRouter(tags=["Payments"])

upload_rate_limiter = RateLimiter(UPLOAD_SLIP_RATE_LIMIT, UPLOAD_SLIP_RATE_WINDOW_SECONDS)


@router.get("/pending", response_model=Envelope[List[PaymentOut]])
async def pending_payments(user: User = Depends(require_admin), session: AsyncSession = Depends(get_async_session)):
    return ok(await payment_service.list_pending_payments(session))


@router.get("/{course_id}/link", response_model=Envelope[PaymentLinkOut])
async def payment_link(course_id: int, user: User = Depends(get_current_user), session: AsyncSession = Depends(get_async_session)):
    return ok(await payment_service.get_payment_link(session, course_id))


@router.post(
    "/{course_id}/upload-slip",
    response_model=Envelope[PaymentOut],
    status_code=201,
    dependencies=[Depends(upload_rate_limiter), Depends(verify_slip_file)],
)
async def upload_slip(
    course_id: int,
    data: UploadSlip,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    payment = await payment_service.upload_slip(session, user.id, course_id, data.slip_url)
    return ok(payment, "Payment slip uploaded. Waiting for admin verification.")


@router.patch("/{payment_id}/verify", response_model=Envelope[PaymentOut])
async def verify_payment(
    payment_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[AdminAction] = Body(default=None),
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    note = data.admin_note if data else None
    payment = await payment_service.verify_payment(session, payment_id, user.id, background_tasks, note)
    record_admin_action(background_tasks, user, "VERIFY_PAYMENT", "Payment", payment_id)
    return ok(payment, "Payment verified. Enrollment activated.")


@router.patch("/{payment_id}/reject", response_model=Envelope[PaymentOut])
async def reject_payment(
    payment_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[AdminAction] = Body(default=None),
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    note = data.admin_note if data else None
    payment = await payment_service.reject_payment(session, payment_id, user.id, background_tasks, note)
    record_admin_action(background_tasks, user, "REJECT_PAYMENT", "Payment", payment_id)
    return ok(payment, "Payment rejected. Enrollment cancelled.")
