from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from lms.db.models import EnrollmentRequestStatus, EnrollmentStatus, PaymentStatus

from .common import CamelModel

SLIP_URL_PATTERN = r"(?i)^https?://\S+\.(jpg|jpeg|png|pdf)(\?\S*)?$"


class AdminEnroll(CamelModel):
    student_id: int
    course_id: int


class EnrollmentOut(CamelModel):
    id: int
    user_id: int
    course_id: int
    status: EnrollmentStatus
    enrolled_by_id: Optional[int] = None
    created_at: Optional[datetime] = None


class MyEnrollmentOut(CamelModel):
    course_id: int
    enrolled_at: datetime


class UploadSlip(CamelModel):
    slip_url: str = Field(
        pattern=SLIP_URL_PATTERN,
        description="URL of the payment slip (jpg, jpeg, png, pdf only, max 2MB)",
    )


class PaymentOut(CamelModel):
    id: int
    user_id: int
    course_id: int
    slip_url: str
    status: PaymentStatus
    reviewed_by_id: Optional[int] = None
    admin_note: Optional[str] = None
    created_at: Optional[datetime] = None


class PaymentLinkOut(CamelModel):
    course_id: int
    course_title: str
    amount: int
    bkash_number: Optional[str] = None
    nagad_number: Optional[str] = None


class EnrollmentRequestCreate(CamelModel):
    course_id: int
    payment_method: Literal["bkash", "nagad", "bank"]
    transaction_id: str = Field(min_length=1, max_length=100)
    screenshot_url: str = Field(pattern=r"^https?://\S+$")


class AdminAction(CamelModel):
    admin_note: Optional[str] = None


class EnrollmentRequestOut(CamelModel):
    id: int
    user_id: int
    course_id: int
    payment_method: str
    transaction_id: str
    screenshot_url: str
    status: EnrollmentRequestStatus
    admin_note: Optional[str] = None
    created_at: Optional[datetime] = None


class CourseProgressOut(CamelModel):
    course_id: int
    completed_lessons: int
    total_lessons: int
    percentage: int
    completed_lesson_ids: List[int]


class LessonCompleteOut(CamelModel):
    lesson_id: int
    completed: bool
    last_watched_at: datetime
