import logging
import re
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.common.cache import cache
from lms.config import COURSE_ITEM_CACHE_TTL, COURSE_LIST_CACHE_TTL
from lms.db.models import Course, CourseStatus, User, UserRole
from lms.errors import BadRequestError, ConflictError, NotFoundError
from lms.models.course import CourseCreate, CourseUpdate, PublicCourseOut

from .ownership import Resource, authorize_mutation

logger = logging.getLogger("course_service")

CACHE_PREFIX = "courses:"


def generate_slug(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "course"


async def generate_unique_slug(session: AsyncSession, title: str, exclude_id: Optional[int] = None) -> str:
    base = generate_slug(title)
    result = await session.execute(
        select(Course.id, Course.slug).filter((Course.slug == base) | Course.slug.like(f"{base}-%"))
    )
    used = {slug for course_id, slug in result.all() if course_id != exclude_id}

    if base not in used:
        return base
    counter = 1
    while f"{base}-{counter}" in used:
        counter += 1
    return f"{base}-{counter}"


def _public(course: Course) -> Dict:
    return PublicCourseOut.model_validate(course).model_dump()


async def create_course(session: AsyncSession, data: CourseCreate, user: User) -> Course:
    course = Course(
        **data.model_dump(),
        slug=await generate_unique_slug(session, data.title),
        status=CourseStatus.DRAFT,
        created_by_id=user.id,
    )
    session.add(course)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("A course with a similar title was just created. Please retry.")

    cache.delete_prefix(CACHE_PREFIX)
    logger.info(f"Course {course.id} '{course.slug}' created by user {user.id}")
    return course


async def update_course(session: AsyncSession, course_id: int, data: CourseUpdate, user: User) -> Course:
    await authorize_mutation(session, Resource.COURSE, course_id, user)
    course = await session.get(Course, course_id)

    changes = data.model_dump(exclude_unset=True)
    price = changes.get("price", course.price)
    discount = changes.get("discount_price", course.discount_price)
    if discount is not None and price is not None and discount > price:
        raise BadRequestError("discountPrice cannot exceed price")

    if changes.get("title") and changes["title"] != course.title:
        course.slug = await generate_unique_slug(session, changes["title"], exclude_id=course.id)
    for field, value in changes.items():
        setattr(course, field, value)

    await session.commit()
    cache.delete_prefix(CACHE_PREFIX)
    return course


async def set_status(session: AsyncSession, course_id: int, status: CourseStatus, user: User) -> Course:
    await authorize_mutation(session, Resource.COURSE, course_id, user)
    course = await session.get(Course, course_id)
    if course.status == status:
        raise BadRequestError(f"Course is already {status.value.lower()}.")
    course.status = status
    await session.commit()
    cache.delete_prefix(CACHE_PREFIX)
    logger.info(f"Course {course_id} is now {status.value}")
    return course


async def soft_delete_course(session: AsyncSession, course_id: int, user: User) -> Dict:
    await authorize_mutation(session, Resource.COURSE, course_id, user)
    course = await session.get(Course, course_id)
    course.is_deleted = True
    await session.commit()
    cache.delete_prefix(CACHE_PREFIX)
    logger.info(f"Course {course_id} soft-deleted by user {user.id}")
    return {"id": course_id}


async def list_published(session: AsyncSession) -> List[Dict]:
    async def load():
        result = await session.execute(
            select(Course)
            .filter(Course.status == CourseStatus.PUBLISHED, Course.is_deleted.is_(False))
            .order_by(Course.created_at.desc(), Course.id.desc())
        )
        return [_public(c) for c in result.scalars().all()]

    return await cache.wrap(f"{CACHE_PREFIX}public:list", load, COURSE_LIST_CACHE_TTL)


async def get_published_by_slug(session: AsyncSession, slug: str) -> Dict:
    async def load():
        result = await session.execute(
            select(Course).filter(
                Course.slug == slug,
                Course.status == CourseStatus.PUBLISHED,
                Course.is_deleted.is_(False),
            )
        )
        course = result.scalars().first()
        if not course:
            raise NotFoundError("Course not found.")
        return _public(course)

    return await cache.wrap(f"{CACHE_PREFIX}public:slug:{slug}", load, COURSE_ITEM_CACHE_TTL)


async def list_admin_courses(session: AsyncSession, user: User) -> List[Course]:
    query = select(Course).filter(Course.is_deleted.is_(False)).order_by(Course.created_at.desc(), Course.id.desc())
    if user.role != UserRole.SUPER_ADMIN:
        query = query.filter(Course.created_by_id == user.id)
    result = await session.execute(query)
    return result.scalars().all()
