from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.database import get_async_session
from lms.db.models import User
from lms.models.common import Envelope, ok
from lms.models.course import (
    LessonCreate, LessonDetailOut, LessonOut, LessonUpdate, ModuleCreate, ModuleOut, ModuleUpdate,
    ModuleWithLessonsOut, ReorderRequest,
)
from lms.security import get_current_user, require_admin
from lms.services import content_service
from lms.services.audit_service import record_admin_action
from lms.services.ownership import require_active_enrollment

module_router = APIRouter(tags=["Modules"])
lesson_router = APIRouter(tags=["Lessons"])


@module_router.post("/courses/{course_id}/modules", response_model=Envelope[ModuleOut], status_code=201)
async def create_module(
    course_id: int,
    data: ModuleCreate,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await content_service.create_module(session, course_id, data, user), "Module created successfully")


@module_router.get("/courses/{course_id}/modules", response_model=Envelope[List[ModuleWithLessonsOut]])
async def list_modules(
    course_id: int,
    user: User = Depends(require_active_enrollment),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await content_service.list_modules_with_lessons(session, course_id))


@module_router.patch("/modules/{module_id}", response_model=Envelope[ModuleOut])
async def update_module(
    module_id: int,
    data: ModuleUpdate,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await content_service.update_module(session, module_id, data, user), "Module updated successfully")


@module_router.delete("/modules/{module_id}", response_model=Envelope[dict])
async def delete_module(
    module_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    result = await content_service.delete_module(session, module_id, user)
    record_admin_action(background_tasks, user, "DELETE_MODULE", "CourseModule", module_id)
    return ok(result, "Module deleted successfully")


@module_router.patch("/modules/{module_id}/reorder", response_model=Envelope[ModuleOut])
async def reorder_module(
    module_id: int,
    data: ReorderRequest,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await content_service.reorder_module(session, module_id, data.direction, user), "Module reordered")


@lesson_router.post("/modules/{module_id}/lessons", response_model=Envelope[LessonOut], status_code=201)
async def create_lesson(
    module_id: int,
    data: LessonCreate,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await content_service.create_lesson(session, module_id, data, user), "Lesson created successfully")


@lesson_router.get("/lessons/{lesson_id}", response_model=Envelope[LessonDetailOut])
async def get_lesson(lesson_id: int, user: User = Depends(get_current_user), session: AsyncSession = Depends(get_async_session)):
    return ok(await content_service.get_lesson(session, lesson_id, user))


@lesson_router.patch("/lessons/{lesson_id}", response_model=Envelope[LessonOut])
async def update_lesson(
    lesson_id: int,
    data: LessonUpdate,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await content_service.update_lesson(session, lesson_id, data, user), "Lesson updated successfully")


@lesson_router.delete("/lessons/{lesson_id}", response_model=Envelope[dict])
async def delete_lesson(
    lesson_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    result = await content_service.delete_lesson(session, lesson_id, user)
    record_admin_action(background_tasks, user, "DELETE_LESSON", "Lesson", lesson_id)
    return ok(result, "Lesson deleted successfully")


@lesson_router.patch("/lessons/{lesson_id}/reorder", response_model=Envelope[LessonOut])
async def reorder_lesson(
    lesson_id: int,
    data: ReorderRequest,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await content_service.reorder_lesson(session, lesson_id, data.direction, user), "Lesson reordered")
