import pytest

from lms.common import file_guard
from lms.db.models import (
    AdminActionLog, CourseStatus, Enrollment, EnrollmentStatus, Notification, Payment, PaymentStatus,
)
from lms.errors import BadRequestError
from lms.main import app

SLIP = {"slipUrl": "https://cdn.example.com/slips/receipt.png"}


async def _upload(client, auth, user, course_id, body=SLIP):
    return await client.post(f"/payments/{course_id}/upload-slip", json=body, headers=auth(user))


async def test_upload_verify_reverify(client, auth, admin, student, course, rows, count):
    res = await _upload(client, auth, student, course.id)
    assert res.status_code == 201
    payment_id = res.json()["data"]["id"]
    assert res.json()["data"]["status"] == "PENDING"

    [enrollment] = await rows(Enrollment, Enrollment.user_id == student.id)
    assert enrollment.status == EnrollmentStatus.PENDING

    res = await client.patch(f"/payments/{payment_id}/verify", headers=auth(admin))
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "VERIFIED"
    assert res.json()["data"]["reviewedById"] == admin.id

    [enrollment] = await rows(Enrollment, Enrollment.user_id == student.id)
    assert enrollment.status == EnrollmentStatus.ACTIVE

    res = await client.patch(f"/payments/{payment_id}/verify", headers=auth(admin))
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Payment has already been verified."}

    assert await count(Notification, Notification.user_id == student.id) == 1
    assert await count(AdminActionLog, AdminActionLog.action == "VERIFY_PAYMENT") == 1


async def test_reject_cancels_enrollment_and_allows_new_slip(client, auth, admin, student, course, rows, count):
    res = await _upload(client, auth, student, course.id)
    payment_id = res.json()["data"]["id"]

    res = await client.patch(
        f"/payments/{payment_id}/reject", json={"adminNote": "Blurry slip"}, headers=auth(admin),
    )
    assert res.status_code == 200
    assert res.json()["data"]["adminNote"] == "Blurry slip"

    [enrollment] = await rows(Enrollment, Enrollment.user_id == student.id)
    assert enrollment.status == EnrollmentStatus.CANCELLED
    [notification] = await rows(Notification, Notification.user_id == student.id)
    assert notification.title == "Payment Rejected"

    res = await _upload(client, auth, student, course.id)
    assert res.status_code == 201
    [enrollment] = await rows(Enrollment, Enrollment.user_id == student.id)
    assert enrollment.status == EnrollmentStatus.PENDING
    assert await count(Payment) == 2


async def test_second_pending_slip_conflicts(client, auth, student, course, count):
    assert (await _upload(client, auth, student, course.id)).status_code == 201
    res = await _upload(client, auth, student, course.id)
    assert res.status_code == 409
    assert await count(Payment) == 1


async def test_active_student_cannot_pay_again(client, auth, admin, student, course):
    payment_id = (await _upload(client, auth, student, course.id)).json()["data"]["id"]
    await client.patch(f"/payments/{payment_id}/verify", headers=auth(admin))

    res = await _upload(client, auth, student, course.id)
    assert res.status_code == 409
    assert res.json()["message"] == "You are already enrolled in this course."


async def test_upload_for_unpublished_course(client, auth, admin, student, make_course):
    draft = await make_course(admin, status=CourseStatus.DRAFT)
    res = await _upload(client, auth, student, draft.id)
    assert res.status_code == 404
    assert res.json()["message"] == "Course not found or not published."


@pytest.mark.parametrize("url", [
    "ftp://cdn.example.com/slip.png",
    "https://cdn.example.com/slip.gif",
    "not-a-url",
])
async def test_slip_url_must_be_an_image_or_pdf_link(client, auth, student, course, url):
    res = await _upload(client, auth, student, course.id, {"slipUrl": url})
    assert res.status_code == 400
    assert res.json()["success"] is False


async def test_slip_url_may_carry_a_query_string(client, auth, student, course):
    res = await _upload(client, auth, student, course.id, {"slipUrl": "https://cdn.example.com/a.PDF?sig=abc"})
    assert res.status_code == 201


async def test_upload_is_rate_limited(client, auth, student, course):
    statuses = [(await _upload(client, auth, student, course.id)).status_code for _ in range(11)]
    assert statuses[0] == 201
    assert set(statuses[1:10]) == {409}
    assert statuses[10] == 429


async def test_pending_list_is_admin_only_and_oldest_first(client, auth, admin, make_user, course):
    first, second = await make_user(), await make_user()
    await _upload(client, auth, first, course.id)
    await _upload(client, auth, second, course.id)

    assert (await client.get("/payments/pending", headers=auth(first))).status_code == 403

    res = await client.get("/payments/pending", headers=auth(admin))
    assert [p["userId"] for p in res.json()["data"]] == [first.id, second.id]


async def test_payment_link_uses_discount_price(client, auth, admin, student, make_course):
    course = await make_course(admin, price=2000, discount_price=1500, bkash_number="01711111111")
    res = await client.get(f"/payments/{course.id}/link", headers=auth(student))
    assert res.json()["data"] == {
        "courseId": course.id,
        "courseTitle": course.title,
        "amount": 1500,
        "bkashNumber": "01711111111",
        "nagadNumber": None,
    }


async def test_verify_unknown_payment(client, auth, admin):
    res = await client.patch("/payments/999/verify", headers=auth(admin))
    assert res.status_code == 404


async def test_remote_file_guard_rejects_large_files(monkeypatch):
    class FakeResponse:
        status_code = 200
        headers = {"content-length": str(3 * 1024 * 1024), "content-type": "image/png"}

    class FakeClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc):
            return False

        async def head(self, url):
            return FakeResponse()

    monkeypatch.setattr(file_guard.httpx, "AsyncClient", FakeClient)
    with pytest.raises(BadRequestError) as exc:
        await file_guard.check_remote_file("https://cdn.example.com/big.png")
    assert "2MB" in exc.value.detail

    FakeResponse.headers = {"content-length": "1000", "content-type": "text/html"}
    with pytest.raises(BadRequestError):
        await file_guard.check_remote_file("https://cdn.example.com/page.png")

    FakeResponse.headers = {"content-length": "1000", "content-type": "application/pdf"}
    await file_guard.check_remote_file("https://cdn.example.com/ok.pdf")


async def test_non_string_slip_url_is_a_bad_request(client, auth, student, course, count):
    # run the real file guard ahead of body validation
    app.dependency_overrides.pop(file_guard.verify_slip_file)

    res = await _upload(client, auth, student, course.id, {"slipUrl": 123})
    assert res.status_code == 400
    assert res.json()["success"] is False
    assert await count(Payment) == 0


async def test_remote_file_guard_lets_unparseable_urls_through(monkeypatch):
    class BrokenClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc):
            return False

        async def head(self, url):
            raise file_guard.httpx.InvalidURL("Invalid non-printable ASCII character in URL")

    monkeypatch.setattr(file_guard.httpx, "AsyncClient", BrokenClient)
    assert await file_guard.check_remote_file("https://cdn.example.com/\x00slip.png") is None
