from datetime import datetime
from typing import List

from .common import CamelModel


class NotificationOut(CamelModel):
    id: int
    title: str
    message: str
    is_read: bool
    created_at: datetime


class NotificationListOut(CamelModel):
    notifications: List[NotificationOut]
    unread_count: int


class ReadAllOut(CamelModel):
    count: int
