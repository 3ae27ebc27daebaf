from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.database import get_async_session
from lms.db.models import CourseStatus, User
from lms.models.common import Envelope, ok
from lms.models.course import CourseCreate, CourseOut, CourseUpdate, PublicCourseOut
from lms.security import require_admin
from lms.services import course_service

course_router = APIRouter(tags=["Courses"])


@course_router.get("", response_model=Envelope[List[PublicCourseOut]])
async def list_courses(session: AsyncSession = Depends(get_async_session)):
    return ok(await course_service.list_published(session))


@course_router.get("/admin", response_model=Envelope[List[CourseOut]])
async def list_admin_courses(user: User = Depends(require_admin), session: AsyncSession = Depends(get_async_session)):
    return ok(await course_service.list_admin_courses(session, user))


@course_router.get("/slug/{slug}", response_model=Envelope[PublicCourseOut])
async def get_course_by_slug(slug: str, session: AsyncSession = Depends(get_async_session)):
    return ok(await course_service.get_published_by_slug(session, slug))


@course_router.post("", response_model=Envelope[CourseOut], status_code=201)
async def create_course(
    data: CourseCreate,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await course_service.create_course(session, data, user), "Course created successfully")


@course_router.patch("/{course_id}", response_model=Envelope[CourseOut])
async def update_course(
    course_id: int,
    data: CourseUpdate,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await course_service.update_course(session, course_id, data, user), "Course updated successfully")


@course_router.patch("/{course_id}/publish", response_model=Envelope[CourseOut])
async def publish_course(course_id: int, user: User = Depends(require_admin), session: AsyncSession = Depends(get_async_session)):
    return ok(await course_service.set_status(session, course_id, CourseStatus.PUBLISHED, user), "Course published")


@course_router.patch("/{course_id}/unpublish", response_model=Envelope[CourseOut])
async def unpublish_course(course_id: int, user: User = Depends(require_admin), session: AsyncSession = Depends(get_async_session)):
    return ok(await course_service.set_status(session, course_id, CourseStatus.DRAFT, user), "Course unpublished")


@course_router.delete("/{course_id}", response_model=Envelope[dict])
async def delete_course(course_id: int, user: User = Depends(require_admin), session: AsyncSession = Depends(get_async_session)):
    return ok(await course_service.soft_delete_course(session, course_id, user), "Course deleted successfully")
