from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.database import get_async_session
from lms.db.models import User
from lms.models.common import Envelope, ok
from lms.models.course import (
    AssignmentOut, AssignmentUpdate, QuizOut, QuizUpdate, SubmissionOut, SubmitAssignment,
)
from lms.security import get_current_user, require_admin
from lms.services import assessment_service

quiz_router = APIRouter(tags=["Quizzes"])
assignments_router = APIRouter(tags=["Assignments"])


@quiz_router.get("/lessons/{lesson_id}/quiz", response_model=Envelope[QuizOut])
async def get_quiz(lesson_id: int, user: User = Depends(get_current_user), session: AsyncSession = Depends(get_async_session)):
    return ok(await assessment_service.get_quiz_for_lesson(session, lesson_id, user))


@quiz_router.patch("/quizzes/{quiz_id}", response_model=Envelope[QuizOut])
async def update_quiz(
    quiz_id: int,
    data: QuizUpdate,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await assessment_service.update_quiz(session, quiz_id, data, user), "Quiz updated successfully")


@assignments_router.patch("/assignments/{assignment_id}", response_model=Envelope[AssignmentOut])
async def update_assignment(
    assignment_id: int,
    data: AssignmentUpdate,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(
        await assessment_service.update_assignment(session, assignment_id, data, user),
        "Assignment updated successfully",
    )


@assignments_router.post("/assignments/{assignment_id}/submit", response_model=Envelope[SubmissionOut], status_code=201)
async def submit_assignment(
    assignment_id: int,
    data: SubmitAssignment,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    submission = await assessment_service.submit_assignment(session, assignment_id, data.file_url, user, background_tasks)
    return ok(submission, "Assignment submitted successfully")


@assignments_router.get("/assignments/{assignment_id}/submissions", response_model=Envelope[List[SubmissionOut]])
async def list_submissions(
    assignment_id: int,
    user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return ok(await assessment_service.list_submissions(session, assignment_id, user))
