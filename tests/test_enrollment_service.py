import pytest
from fastapi import BackgroundTasks

from lms.db.models import AdminActionLog, CourseStatus, Enrollment, EnrollmentStatus, Notification
from lms.errors import BadRequestError, ConflictError, NotFoundError
from lms.services import enrollment_service, notification_service


async def test_enroll_self_creates_pending(session, student, course):
    enrollment = await enrollment_service.enroll_self(session, student.id, course.id)
    assert enrollment.status == EnrollmentStatus.PENDING
    assert enrollment.enrolled_by_id is None


async def test_enroll_self_twice_conflicts(session, student, course, count):
    await enrollment_service.enroll_self(session, student.id, course.id)
    with pytest.raises(ConflictError):
        await enrollment_service.enroll_self(session, student.id, course.id)
    assert await count(Enrollment) == 1


async def test_cannot_enroll_in_draft_or_deleted_course(session, student, admin, make_course):
    draft = await make_course(admin, status=CourseStatus.DRAFT)
    with pytest.raises(BadRequestError) as exc:
        await enrollment_service.enroll_self(session, student.id, draft.id)
    assert exc.value.detail == "Cannot enroll in an unpublished course."

    deleted = await make_course(admin, is_deleted=True)
    with pytest.raises(NotFoundError):
        await enrollment_service.enroll_self(session, student.id, deleted.id)


async def test_admin_enroll_records_who_enrolled(session, admin, student, course):
    enrollment = await enrollment_service.enroll_student(session, admin.id, student.id, course.id)
    assert enrollment.enrolled_by_id == admin.id

    with pytest.raises(ConflictError):
        await enrollment_service.enroll_student(session, admin.id, student.id, course.id)
    with pytest.raises(NotFoundError):
        await enrollment_service.enroll_student(session, admin.id, 9999, course.id)


async def test_activate_and_cancel_transitions(session, student, course, fetch):
    enrollment = await enrollment_service.enroll_self(session, student.id, course.id)
    tasks = BackgroundTasks()

    await enrollment_service.activate(session, enrollment.id, tasks)
    assert (await fetch(Enrollment, enrollment.id)).status == EnrollmentStatus.ACTIVE
    assert [t.func for t in tasks.tasks] == [notification_service.fire_enrollment_activated]

    with pytest.raises(BadRequestError) as exc:
        await enrollment_service.activate(session, enrollment.id, tasks)
    assert exc.value.detail == "Enrollment is already active."

    await enrollment_service.cancel(session, enrollment.id)
    assert (await fetch(Enrollment, enrollment.id)).status == EnrollmentStatus.CANCELLED

    with pytest.raises(BadRequestError) as exc:
        await enrollment_service.activate(session, enrollment.id, tasks)
    assert exc.value.detail == "Cannot activate a cancelled enrollment."

    with pytest.raises(BadRequestError) as exc:
        await enrollment_service.cancel(session, enrollment.id)
    assert exc.value.detail == "Enrollment is already cancelled."
    assert len(tasks.tasks) == 1


async def test_unknown_enrollment(session):
    with pytest.raises(NotFoundError):
        await enrollment_service.activate(session, 404, BackgroundTasks())
    with pytest.raises(NotFoundError):
        await enrollment_service.cancel(session, 404)


async def test_my_enrollments_lists_only_active(client, auth, admin, student, make_course, session):
    active_course = await make_course(admin)
    pending_course = await make_course(admin)
    active = await enrollment_service.enroll_self(session, student.id, active_course.id)
    await enrollment_service.enroll_self(session, student.id, pending_course.id)
    await enrollment_service.activate(session, active.id, BackgroundTasks())

    res = await client.get("/enrollments/my", headers=auth(student))
    assert res.status_code == 200
    data = res.json()["data"]
    assert [e["courseId"] for e in data] == [active_course.id]
    assert "enrolledAt" in data[0]


async def test_activate_route_notifies_student(client, auth, admin, student, course, session, rows):
    enrollment = await enrollment_service.enroll_self(session, student.id, course.id)
    res = await client.patch(f"/enrollments/{enrollment.id}/activate", headers=auth(admin))
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "ACTIVE"

    notifications = await rows(Notification, Notification.user_id == student.id)
    assert [n.title for n in notifications] == ["Enrollment Activated"]
    logs = await rows(AdminActionLog)
    assert [(log.action, log.entity_id) for log in logs] == [("ACTIVATE_ENROLLMENT", str(enrollment.id))]


async def test_students_cannot_activate(client, auth, student, course, session):
    enrollment = await enrollment_service.enroll_self(session, student.id, course.id)
    res = await client.patch(f"/enrollments/{enrollment.id}/activate", headers=auth(student))
    assert res.status_code == 403
    assert res.json() == {"success": False, "message": "You do not have permission to perform this action."}
