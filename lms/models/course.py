from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from lms.db.models import CourseStatus, LessonType

from .common import CamelModel


class CourseCreate(CamelModel):
    title: str = Field(min_length=3, max_length=200)
    description: Optional[str] = None
    banner_image: Optional[str] = None
    price: int = Field(ge=0)
    discount_price: Optional[int] = Field(default=None, ge=0)
    bkash_number: Optional[str] = None
    nagad_number: Optional[str] = None

    @model_validator(mode="after")
    def discount_below_price(self):
        if self.discount_price is not None and self.discount_price > self.price:
            raise ValueError("discountPrice cannot exceed price")
        return self


class CourseUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = None
    banner_image: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0)
    discount_price: Optional[int] = Field(default=None, ge=0)
    bkash_number: Optional[str] = None
    nagad_number: Optional[str] = None

    @field_validator("title", "price")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class CourseOut(CamelModel):
    id: int
    title: str
    slug: str
    description: Optional[str] = None
    banner_image: Optional[str] = None
    price: int
    discount_price: Optional[int] = None
    status: CourseStatus
    created_by_id: int
    created_at: Optional[datetime] = None


class PublicCourseOut(CamelModel):
    id: int
    title: str
    slug: str
    description: Optional[str] = None
    banner_image: Optional[str] = None
    price: int
    discount_price: Optional[int] = None


class ModuleCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)


class ModuleUpdate(ModuleCreate):
    pass


class ModuleOut(CamelModel):
    id: int
    title: str
    order: int
    course_id: int


class ReorderRequest(CamelModel):
    direction: Literal["up", "down"]


class LessonCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    type: LessonType
    video_url: Optional[str] = None
    content: Optional[Any] = None
    quiz_title: Optional[str] = None
    assignment_title: Optional[str] = None
    assignment_description: Optional[str] = None


class LessonUpdate(CamelModel):
    # the lesson type is fixed at creation: it decides which side record exists
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    video_url: Optional[str] = None
    content: Optional[Any] = None

    @field_validator("title")
    @classmethod
    def title_not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

class LessonOut(CamelModel):
    id: int
    title: str
    order: int
    type: LessonType
    video_url: Optional[str] = None
    module_id: int
    content: Optional[Any] = None


class LessonDetailOut(LessonOut):
    course_id: int


class LessonSummaryOut(CamelModel):
    id: int
    title: str
    order: int
    type: LessonType
    video_url: Optional[str] = None
    module_id: int


class ModuleWithLessonsOut(ModuleOut):
    lessons: List[LessonSummaryOut] = []


class QuizUpdate(CamelModel):
    title: str = Field(min_length=1, max_length=200)


class QuizOut(CamelModel):
    id: int
    lesson_id: int
    title: str


class AssignmentUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None


class AssignmentOut(CamelModel):
    id: int
    lesson_id: int
    title: str
    description: str


class SubmitAssignment(CamelModel):
    file_url: str = Field(pattern=r"^https?://\S+$")


class SubmissionOut(CamelModel):
    id: int
    assignment_id: int
    user_id: int
    file_url: str
    submitted_at: Optional[datetime] = None
