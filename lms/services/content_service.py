"""Course modules and lessons.

Every mutation is ownership-checked first and then runs as a single
transaction: either all of its writes land or none do.

Reordering swaps ``order`` with the adjacent sibling. Because
``(parent, order)`` is unique, the swap parks the moving row at the
sentinel order ``-1`` first: three UPDATEs, one transaction.
"""
import logging
from typing import Dict, List, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms.db.models import (
    Assignment, AssignmentSubmission, CourseModule, Lesson, LessonType, Quiz, User, UserRole,
)
from lms.errors import BadRequestError, ConflictError, NotFoundError
from lms.models.course import LessonCreate, LessonUpdate, ModuleCreate, ModuleUpdate

from .ownership import Resource, authorize_mutation, ensure_can_mutate, ensure_can_read, resolve_owner

logger = logging.getLogger("content_service")

SENTINEL_ORDER = -1


# --- Cascade steps ---

async def _lesson_ids_for_module(session: AsyncSession, module_id: int) -> List[int]:
    result = await session.execute(select(Lesson.id).filter(Lesson.module_id == module_id))
    return list(result.scalars().all())


async def _assignment_ids_for_lessons(session: AsyncSession, lesson_ids: Sequence[int]) -> List[int]:
    if not lesson_ids:
        return []
    result = await session.execute(select(Assignment.id).filter(Assignment.lesson_id.in_(lesson_ids)))
    return list(result.scalars().all())


async def _delete_submissions(session: AsyncSession, assignment_ids: Sequence[int]):
    if assignment_ids:
        await session.execute(
            delete(AssignmentSubmission)
            .where(AssignmentSubmission.assignment_id.in_(assignment_ids))
            .execution_options(synchronize_session=False)
        )


async def _delete_assignments(session: AsyncSession, assignment_ids: Sequence[int]):
    if assignment_ids:
        await session.execute(
            delete(Assignment).where(Assignment.id.in_(assignment_ids)).execution_options(synchronize_session=False)
        )


async def _delete_quizzes(session: AsyncSession, lesson_ids: Sequence[int]):
    if lesson_ids:
        await session.execute(
            delete(Quiz).where(Quiz.lesson_id.in_(lesson_ids)).execution_options(synchronize_session=False)
        )


async def _delete_lessons(session: AsyncSession, lesson_ids: Sequence[int]):
    if lesson_ids:
        await session.execute(
            delete(Lesson).where(Lesson.id.in_(lesson_ids)).execution_options(synchronize_session=False)
        )


async def _delete_lesson_tree(session: AsyncSession, lesson_ids: Sequence[int]):
    assignment_ids = await _assignment_ids_for_lessons(session, lesson_ids)
    await _delete_submissions(session, assignment_ids)
    await _delete_assignments(session, assignment_ids)
    await _delete_quizzes(session, lesson_ids)
    await _delete_lessons(session, lesson_ids)


# --- Reorder ---

async def _swap_with_sibling(session: AsyncSession, model, parent_column, item, direction: str, label: str):
    siblings = select(model).filter(parent_column == getattr(item, parent_column.key))
    if direction == "up":
        siblings = siblings.filter(model.order < item.order).order_by(model.order.desc())
    else:
        siblings = siblings.filter(model.order > item.order).order_by(model.order.asc())

    sibling = (await session.execute(siblings.limit(1))).scalars().first()
    if sibling is None:
        edge = "top" if direction == "up" else "bottom"
        raise BadRequestError(f"Cannot move {label} {direction}. It is already at the {edge}.")

    current_order, sibling_order = item.order, sibling.order
    try:
        for row_id, new_order in (
            (item.id, SENTINEL_ORDER),
            (sibling.id, current_order),
            (item.id, sibling_order),
        ):
            await session.execute(
                update(model)
                .where(model.id == row_id)
                .values(order=new_order)
                .execution_options(synchronize_session=False)
            )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await session.refresh(item)
    await session.refresh(sibling)
    logger.info(f"Moved {label} {item.id} {direction}: {current_order} <-> {sibling_order} with {label} {sibling.id}")
    return item


# --- Modules ---

async def _next_order(session: AsyncSession, column, parent_column, parent_id: int) -> int:
    result = await session.execute(select(func.max(column)).filter(parent_column == parent_id))
    current = result.scalar()
    return (current or 0) + 1


async def create_module(session: AsyncSession, course_id: int, data: ModuleCreate, user: User) -> CourseModule:
    await authorize_mutation(session, Resource.COURSE, course_id, user)

    order = await _next_order(session, CourseModule.order, CourseModule.course_id, course_id)
    module = CourseModule(course_id=course_id, title=data.title, order=order)
    session.add(module)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Another module was added at the same time. Please retry.")
    logger.info(f"Module {module.id} created in course {course_id} at order {order}")
    return module


async def update_module(session: AsyncSession, module_id: int, data: ModuleUpdate, user: User) -> CourseModule:
    await authorize_mutation(session, Resource.MODULE, module_id, user)
    module = await session.get(CourseModule, module_id)
    module.title = data.title
    await session.commit()
    return module


async def list_modules_with_lessons(session: AsyncSession, course_id: int) -> List[CourseModule]:
    result = await session.execute(
        select(CourseModule)
        .options(selectinload(CourseModule.lessons))
        .filter(CourseModule.course_id == course_id)
        .order_by(CourseModule.order)
    )
    return result.scalars().all()


async def delete_module(session: AsyncSession, module_id: int, user: User) -> Dict:
    await authorize_mutation(session, Resource.MODULE, module_id, user)

    try:
        lesson_ids = await _lesson_ids_for_module(session, module_id)
        await _delete_lesson_tree(session, lesson_ids)
        await session.execute(
            delete(CourseModule).where(CourseModule.id == module_id).execution_options(synchronize_session=False)
        )
        await session.commit()
    except Exception:
        await session.rollback()
        logger.error(f"Deleting module {module_id} failed; nothing was removed")
        raise

    logger.info(f"Module {module_id} deleted with {len(lesson_ids)} lessons")
    return {"id": module_id, "deleted_lessons": len(lesson_ids)}


async def reorder_module(session: AsyncSession, module_id: int, direction: str, user: User) -> CourseModule:
    await authorize_mutation(session, Resource.MODULE, module_id, user)
    module = await session.get(CourseModule, module_id)
    return await _swap_with_sibling(session, CourseModule, CourseModule.course_id, module, direction, "module")


# --- Lessons ---

def _check_lesson_payload(data: LessonCreate):
    if data.type == LessonType.VIDEO and not data.video_url:
        raise BadRequestError("videoUrl is required for video lessons.")
    if data.type == LessonType.QUIZ and not data.quiz_title:
        raise BadRequestError("quizTitle is required for quiz lessons.")
    if data.type == LessonType.ASSIGNMENT and not (data.assignment_title and data.assignment_description):
        raise BadRequestError("assignmentTitle and assignmentDescription are required for assignment lessons.")


async def create_lesson(session: AsyncSession, module_id: int, data: LessonCreate, user: User) -> Lesson:
    await authorize_mutation(session, Resource.MODULE, module_id, user)
    _check_lesson_payload(data)

    order = await _next_order(session, Lesson.order, Lesson.module_id, module_id)
    lesson = Lesson(
        module_id=module_id,
        title=data.title,
        type=data.type,
        video_url=data.video_url,
        content=data.content,
        order=order,
    )
    try:
        session.add(lesson)
        await session.flush()
        if data.type == LessonType.QUIZ:
            session.add(Quiz(lesson_id=lesson.id, title=data.quiz_title))
        elif data.type == LessonType.ASSIGNMENT:
            session.add(Assignment(
                lesson_id=lesson.id,
                title=data.assignment_title,
                description=data.assignment_description,
            ))
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Another lesson was added at the same time. Please retry.")
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Lesson {lesson.id} ({data.type.value}) created in module {module_id} at order {order}")
    return lesson


async def update_lesson(session: AsyncSession, lesson_id: int, data: LessonUpdate, user: User) -> Lesson:
    await authorize_mutation(session, Resource.LESSON, lesson_id, user)
    lesson = await session.get(Lesson, lesson_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(lesson, field, value)
    await session.commit()
    return lesson


async def get_lesson(session: AsyncSession, lesson_id: int, user: User) -> Dict:
    info = await resolve_owner(session, Resource.LESSON, lesson_id)
    if user.role in (UserRole.ADMIN, UserRole.SUPER_ADMIN):
        ensure_can_mutate(info, user, Resource.LESSON)
    else:
        await ensure_can_read(session, info.course_id, user)

    lesson = await session.get(Lesson, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson not found.")
    return {
        "id": lesson.id,
        "title": lesson.title,
        "order": lesson.order,
        "type": lesson.type,
        "video_url": lesson.video_url,
        "module_id": lesson.module_id,
        "content": lesson.content,
        "course_id": info.course_id,
    }


async def delete_lesson(session: AsyncSession, lesson_id: int, user: User) -> Dict:
    await authorize_mutation(session, Resource.LESSON, lesson_id, user)
    try:
        await _delete_lesson_tree(session, [lesson_id])
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    logger.info(f"Lesson {lesson_id} deleted")
    return {"id": lesson_id}


async def reorder_lesson(session: AsyncSession, lesson_id: int, direction: str, user: User) -> Lesson:
    await authorize_mutation(session, Resource.LESSON, lesson_id, user)
    lesson = await session.get(Lesson, lesson_id)
    return await _swap_with_sibling(session, Lesson, Lesson.module_id, lesson, direction, "lesson")
