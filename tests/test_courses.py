from lms.common.ttl_store import default_store
from lms.db.models import Course, CourseStatus
from lms.services.course_service import generate_slug


def test_generate_slug():
    assert generate_slug("  Full-Stack Web   Development 101! ") == "full-stack-web-development-101"
    assert generate_slug("!!!") == "course"


async def _create(client, auth, user, title="Python Basics", **extra):
    return await client.post("/courses", json={"title": title, "price": 1500, **extra}, headers=auth(user))


async def test_create_course_starts_as_draft_with_unique_slug(client, auth, admin):
    first = (await _create(client, auth, admin)).json()["data"]
    second = (await _create(client, auth, admin)).json()["data"]
    third = (await _create(client, auth, admin)).json()["data"]

    assert first["status"] == "DRAFT"
    assert first["createdById"] == admin.id
    assert [first["slug"], second["slug"], third["slug"]] == ["python-basics", "python-basics-1", "python-basics-2"]


async def test_discount_cannot_exceed_price(client, auth, admin):
    res = await _create(client, auth, admin, discountPrice=2000)
    assert res.status_code == 400


async def test_students_cannot_create_courses(client, auth, student):
    assert (await _create(client, auth, student)).status_code == 403


async def test_publish_flow_and_public_listing(client, auth, admin):
    course_id = (await _create(client, auth, admin)).json()["data"]["id"]

    assert (await client.get("/courses")).json()["data"] == []

    res = await client.patch(f"/courses/{course_id}/publish", headers=auth(admin))
    assert res.json()["data"]["status"] == "PUBLISHED"

    listed = (await client.get("/courses")).json()["data"]
    assert [c["slug"] for c in listed] == ["python-basics"]

    res = await client.get("/courses/slug/python-basics")
    assert res.json()["data"]["id"] == course_id

    res = await client.patch(f"/courses/{course_id}/publish", headers=auth(admin))
    assert res.status_code == 400


async def test_listing_is_cached_until_a_course_changes(client, auth, admin, make_course, session):
    await make_course(admin, title="Cached", slug="cached")
    assert len((await client.get("/courses")).json()["data"]) == 1
    assert default_store.get("courses:public:list") is not None

    # written behind the service's back: still served from cache
    session.add(Course(title="Sneaky", slug="sneaky", price=0, status=CourseStatus.PUBLISHED, created_by_id=admin.id))
    await session.commit()
    assert len((await client.get("/courses")).json()["data"]) == 1

    await _create(client, auth, admin, title="Fresh")
    assert len((await client.get("/courses")).json()["data"]) == 2


async def test_update_title_regenerates_slug(client, auth, admin, other_admin):
    course_id = (await _create(client, auth, admin)).json()["data"]["id"]

    res = await client.patch(f"/courses/{course_id}", json={"title": "Advanced Python"}, headers=auth(admin))
    assert res.json()["data"]["slug"] == "advanced-python"

    res = await client.patch(f"/courses/{course_id}", json={"title": "Stolen"}, headers=auth(other_admin))
    assert res.status_code == 403


async def test_soft_delete_hides_course(client, auth, admin, make_course, fetch):
    course = await make_course(admin, slug="gone")
    res = await client.delete(f"/courses/{course.id}", headers=auth(admin))
    assert res.status_code == 200

    assert (await fetch(Course, course.id)).is_deleted is True
    assert (await client.get("/courses/slug/gone")).status_code == 404
    assert (await client.delete(f"/courses/{course.id}", headers=auth(admin))).status_code == 404


async def test_admin_listing_scope(client, auth, admin, other_admin, super_admin, make_course):
    mine = await make_course(admin)
    await make_course(other_admin)

    res = await client.get("/courses/admin", headers=auth(admin))
    assert [c["id"] for c in res.json()["data"]] == [mine.id]

    res = await client.get("/courses/admin", headers=auth(super_admin))
    assert len(res.json()["data"]) == 2


async def test_update_rejects_null_for_required_fields(client, auth, admin, make_course, fetch):
    course = await make_course(admin, price=2000, discount_price=1500)

    for body in ({"title": None}, {"price": None}):
        res = await client.patch(f"/courses/{course.id}", json=body, headers=auth(admin))
        assert res.status_code == 400

    # the discount is optional and can be removed
    res = await client.patch(f"/courses/{course.id}", json={"discountPrice": None}, headers=auth(admin))
    assert res.status_code == 200
    saved = await fetch(Course, course.id)
    assert (saved.title, saved.price, saved.discount_price) == (course.title, 2000, None)
