import itertools
import os
import tempfile

_tmp_dir = tempfile.mkdtemp(prefix="lms-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["MAIL_QUEUE_ENABLED"] = "false"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import func, select  # noqa: E402

from lms.common.file_guard import verify_slip_file  # noqa: E402
from lms.common.ttl_store import default_store  # noqa: E402
from lms.db import database  # noqa: E402
from lms.db.models import (  # noqa: E402
    Assignment, Course, CourseModule, CourseStatus, Lesson, LessonType, Quiz, User, UserRole,
)
from lms.main import app  # noqa: E402
from lms.security import create_access_token, get_password_hash  # noqa: E402

PASSWORD = "password123"


@pytest.fixture(autouse=True)
async def fresh_database():
    async with database.engine.begin() as conn:
        await conn.run_sync(database.Base.metadata.drop_all)
        await conn.run_sync(database.Base.metadata.create_all)
    default_store.clear()
    yield
    default_store.clear()


@pytest.fixture
async def session():
    async with database.AsyncSessionLocal() as s:
        yield s


async def _skip_slip_check():
    return None


@pytest.fixture
async def client():
    app.dependency_overrides[verify_slip_file] = _skip_slip_check
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}
    return _headers


async def _save(*objects):
    async with database.AsyncSessionLocal() as s:
        s.add_all(objects)
        await s.commit()
    return objects[0] if len(objects) == 1 else objects


@pytest.fixture
def make_user():
    counter = itertools.count(1)
    password_hash = get_password_hash(PASSWORD)

    async def _make(role=UserRole.STUDENT, **kwargs):
        n = next(counter)
        kwargs.setdefault("name", f"{role.value.title()} {n}")
        kwargs.setdefault("email", f"{role.value.lower()}{n}@example.com")
        return await _save(User(role=role, password_hash=password_hash, **kwargs))

    return _make


@pytest.fixture
async def student(make_user):
    return await make_user(UserRole.STUDENT)


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN)


@pytest.fixture
async def other_admin(make_user):
    return await make_user(UserRole.ADMIN)


@pytest.fixture
async def super_admin(make_user):
    return await make_user(UserRole.SUPER_ADMIN)


@pytest.fixture
def make_course():
    counter = itertools.count(1)

    async def _make(owner: User, status=CourseStatus.PUBLISHED, **kwargs):
        n = next(counter)
        kwargs.setdefault("title", f"Course {n}")
        kwargs.setdefault("slug", f"course-{n}")
        kwargs.setdefault("price", 1000)
        return await _save(Course(status=status, created_by_id=owner.id, **kwargs))

    return _make


@pytest.fixture
async def course(make_course, admin):
    return await make_course(admin, bkash_number="01700000000")


@pytest.fixture
def make_module():
    async def _make(course: Course, order: int, title=None):
        return await _save(CourseModule(course_id=course.id, order=order, title=title or f"Module {order}"))
    return _make


@pytest.fixture
def make_lesson():
    async def _make(module: CourseModule, order: int, type=LessonType.VIDEO, title=None):
        lesson = await _save(Lesson(
            module_id=module.id,
            order=order,
            type=type,
            title=title or f"Lesson {order}",
            video_url="https://cdn.example.com/v.mp4" if type == LessonType.VIDEO else None,
        ))
        if type == LessonType.QUIZ:
            await _save(Quiz(lesson_id=lesson.id, title=f"Quiz for {lesson.title}"))
        elif type == LessonType.ASSIGNMENT:
            await _save(Assignment(lesson_id=lesson.id, title=f"Assignment for {lesson.title}", description="Build it"))
        return lesson
    return _make


@pytest.fixture
def fetch():
    async def _fetch(model, ident):
        async with database.AsyncSessionLocal() as s:
            return await s.get(model, ident)
    return _fetch


@pytest.fixture
def rows():
    async def _rows(model, *criteria):
        async with database.AsyncSessionLocal() as s:
            result = await s.execute(select(model).filter(*criteria))
            return result.scalars().all()
    return _rows


@pytest.fixture
def count():
    async def _count(model, *criteria):
        async with database.AsyncSessionLocal() as s:
            result = await s.execute(select(func.count()).select_from(model).filter(*criteria))
            return result.scalar_one()
    return _count
