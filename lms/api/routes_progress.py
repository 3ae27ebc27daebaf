from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.database import get_async_session
from lms.db.models import User
from lms.models.common import Envelope, ok
from lms.models.enrollment import CourseProgressOut, LessonCompleteOut
from lms.security import get_current_user
from lms.services import progress_service
from lms.services.ownership import require_active_enrollment

router = APIRouter(tags=["Progress"])


@router.post("/lessons/{lesson_id}/complete", response_model=Envelope[LessonCompleteOut])
async def complete_lesson(lesson_id: int, user: User = Depends(get_current_user), session: AsyncSession = Depends(get_async_session)):
    return ok(await progress_service.mark_lesson_complete(session, user.id, lesson_id), "Lesson marked as complete")


@router.get("/courses/{course_id}", response_model=Envelope[CourseProgressOut])
async def course_progress(
    course_id: int,
    user: User = Depends(require_active_enrollment),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await progress_service.get_course_progress(session, user.id, course_id))
