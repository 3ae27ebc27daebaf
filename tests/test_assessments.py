import pytest
from sqlalchemy import select

from lms.db.models import Assignment, AssignmentSubmission, Enrollment, EnrollmentStatus, LessonType, Notification, Quiz


@pytest.fixture
async def assignment(session, course, make_module, make_lesson):
    module = await make_module(course, 1)
    lesson = await make_lesson(module, 1, type=LessonType.ASSIGNMENT)
    result = await session.execute(select(Assignment).filter(Assignment.lesson_id == lesson.id))
    return result.scalars().first()


@pytest.fixture
async def enrolled_student(session, student, course):
    session.add(Enrollment(user_id=student.id, course_id=course.id, status=EnrollmentStatus.ACTIVE))
    await session.commit()
    return student


SUBMISSION = {"fileUrl": "https://drive.example.com/project.zip"}


async def test_second_submission_conflicts(client, auth, enrolled_student, assignment, count):
    url = f"/assignments/{assignment.id}/submit"

    res = await client.post(url, json=SUBMISSION, headers=auth(enrolled_student))
    assert res.status_code == 201

    res = await client.post(url, json=SUBMISSION, headers=auth(enrolled_student))
    assert res.status_code == 409
    assert res.json()["message"] == "You have already submitted this assignment."
    assert await count(AssignmentSubmission) == 1


async def test_submission_notifies_student_and_course_owner(client, auth, admin, enrolled_student, assignment, rows):
    await client.post(f"/assignments/{assignment.id}/submit", json=SUBMISSION, headers=auth(enrolled_student))

    notifications = await rows(Notification)
    assert {(n.user_id, n.title) for n in notifications} == {
        (enrolled_student.id, "Assignment Submitted"),
        (admin.id, "New Assignment Submission"),
    }


async def test_submission_requires_active_enrollment(client, auth, student, assignment):
    res = await client.post(f"/assignments/{assignment.id}/submit", json=SUBMISSION, headers=auth(student))
    assert res.status_code == 403


async def test_owner_lists_submissions(client, auth, admin, other_admin, enrolled_student, assignment):
    await client.post(f"/assignments/{assignment.id}/submit", json=SUBMISSION, headers=auth(enrolled_student))

    res = await client.get(f"/assignments/{assignment.id}/submissions", headers=auth(admin))
    assert [s["userId"] for s in res.json()["data"]] == [enrolled_student.id]

    res = await client.get(f"/assignments/{assignment.id}/submissions", headers=auth(other_admin))
    assert res.status_code == 403


async def test_update_assignment_and_quiz(client, auth, admin, other_admin, course, make_module, make_lesson, rows):
    module = await make_module(course, 1)
    quiz_lesson = await make_lesson(module, 1, type=LessonType.QUIZ)
    [quiz] = await rows(Quiz)

    res = await client.patch(f"/quizzes/{quiz.id}", json={"title": "Midterm"}, headers=auth(admin))
    assert res.json()["data"]["title"] == "Midterm"

    res = await client.patch(f"/quizzes/{quiz.id}", json={"title": "Mine now"}, headers=auth(other_admin))
    assert res.status_code == 403

    res = await client.get(f"/lessons/{quiz_lesson.id}/quiz", headers=auth(admin))
    assert res.json()["data"]["title"] == "Midterm"


async def test_update_assignment_description(client, auth, admin, assignment):
    res = await client.patch(
        f"/assignments/{assignment.id}", json={"description": "Ship it"}, headers=auth(admin),
    )
    assert res.status_code == 200
    assert res.json()["data"]["description"] == "Ship it"
    assert res.json()["data"]["title"] == assignment.title


async def test_unknown_assignment(client, auth, admin):
    res = await client.patch("/assignments/777", json={"title": "x"}, headers=auth(admin))
    assert res.status_code == 404
    assert res.json()["message"] == "Assignment not found."
