from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.database import get_async_session
from lms.db.models import User
from lms.models.common import Envelope, ok
from lms.models.notification import NotificationListOut, NotificationOut, ReadAllOut
from lms.security import get_current_user
from lms.services import notification_service

router = APIRouter(tags=["Notifications"])


@router.get("", response_model=Envelope[NotificationListOut])
async def my_notifications(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_async_session)):
    notifications, unread = await notification_service.get_user_notifications(session, user.id)
    return ok({"notifications": notifications, "unread_count": unread})


@router.patch("/read-all", response_model=Envelope[ReadAllOut])
async def read_all(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_async_session)):
    return ok(await notification_service.mark_all_as_read(session, user.id), "All notifications marked as read")


@router.patch("/{notification_id}/read", response_model=Envelope[NotificationOut])
async def read_one(notification_id: int, user: User = Depends(get_current_user), session: AsyncSession = Depends(get_async_session)):
    return ok(await notification_service.mark_as_read(session, notification_id, user.id))
