"""Course access, chapter progress and per-course purchase requests."""

from datetime import timedelta

import pytest

from mentora.db.models import Chapter, Course, User


@pytest.fixture
def seed_course(db_session):
    async def _seed(course_id: str = "c1", chapters: int = 3, **fields) -> Course:
        fields.setdefault("title", "Algebra Basics")
        fields.setdefault("access_type", "paid")
        fields.setdefault("price", 50000)
        course = Course(id=course_id, **fields)
        db_session.add(course)
        for i in range(chapters):
            db_session.add(Chapter(id=f"{course_id}-ch{i + 1}", course_id=course_id, title=f"Chapter {i + 1}", position=i))
        await db_session.commit()
        return course

    return _seed


def progress_url(course_id: str) -> str:
    return f"/api/v1/courses/{course_id}/progress"


class TestCatalog:
    @pytest.mark.asyncio
    async def test_lists_courses(self, client, seed_course):
        await seed_course("c1")
        await seed_course("c2", title="Geometry", access_type="free", price=None)
        data = (await client.get("/api/v1/courses")).json()
        assert {c["id"] for c in data} == {"c1", "c2"}

    @pytest.mark.asyncio
    async def test_detail_hides_chapters_without_access(self, client, auth_headers, seed_course):
        await seed_course("c1")
        data = (await client.get("/api/v1/courses/c1", headers=auth_headers("u1"))).json()
        assert data["hasAccess"] is False
        assert data["chapters"] == []
        assert data["course"]["title"] == "Algebra Basics"

    @pytest.mark.asyncio
    async def test_detail_of_free_course(self, client, auth_headers, seed_course):
        await seed_course("c1", access_type="free")
        data = (await client.get("/api/v1/courses/c1", headers=auth_headers("u1"))).json()
        assert data["hasAccess"] is True
        assert [ch["id"] for ch in data["chapters"]] == ["c1-ch1", "c1-ch2", "c1-ch3"]

    @pytest.mark.asyncio
    async def test_unknown_course(self, client, auth_headers):
        response = await client.get("/api/v1/courses/nope", headers=auth_headers("u1"))
        assert response.status_code == 404


class TestProgress:
    @pytest.mark.asyncio
    async def test_add_and_remove(self, client, auth_headers, seed_course):
        await seed_course("c1", access_type="free")
        headers = auth_headers("u1")

        await client.post(progress_url("c1"), json={"chapterId": "c1-ch1", "action": "add"}, headers=headers)
        data = (await client.post(progress_url("c1"), json={"chapterId": "c1-ch2", "action": "add"}, headers=headers)).json()
        assert data["completedChapterIds"] == ["c1-ch1", "c1-ch2"]

        again = (await client.post(progress_url("c1"), json={"chapterId": "c1-ch1", "action": "add"}, headers=headers)).json()
        assert again["completedChapterIds"] == ["c1-ch1", "c1-ch2"]

        removed = (await client.post(progress_url("c1"), json={"chapterId": "c1-ch1", "action": "remove"}, headers=headers)).json()
        assert removed["completedChapterIds"] == ["c1-ch2"]

        detail = (await client.get("/api/v1/courses/c1", headers=headers)).json()
        assert detail["completedChapterIds"] == ["c1-ch2"]

    @pytest.mark.asyncio
    async def test_paid_course_without_access(self, client, auth_headers, seed_course):
        await seed_course("c1")
        response = await client.post(progress_url("c1"), json={"chapterId": "c1-ch1", "action": "add"}, headers=auth_headers("u1"))
        assert response.status_code == 403
        assert response.json() == {"error": "Access denied"}

    @pytest.mark.asyncio
    async def test_chapter_of_another_course(self, client, auth_headers, seed_course):
        await seed_course("c1", access_type="free")
        await seed_course("c2", access_type="free")
        response = await client.post(progress_url("c1"), json={"chapterId": "c2-ch1", "action": "add"}, headers=auth_headers("u1"))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_action(self, client, auth_headers, seed_course):
        await seed_course("c1", access_type="free")
        response = await client.post(progress_url("c1"), json={"chapterId": "c1-ch1", "action": "toggle"}, headers=auth_headers("u1"))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_running_subscription_opens_subscription_course(self, client, auth_headers, seed_course, make_user, clock):
        await seed_course("c1", access_type="subscription")
        await make_user("u1", subscription_active=True, subscriber_until=clock.now + timedelta(days=5))
        response = await client.post(progress_url("c1"), json={"chapterId": "c1-ch1", "action": "add"}, headers=auth_headers("u1"))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_lapsed_subscription_is_denied(self, client, auth_headers, seed_course, make_user, clock):
        await seed_course("c1", access_type="subscription")
        await make_user("u1", subscription_active=True, subscriber_until=clock.now - timedelta(minutes=1))
        response = await client.post(progress_url("c1"), json={"chapterId": "c1-ch1", "action": "add"}, headers=auth_headers("u1"))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_mentor_role_has_access(self, client, auth_headers, seed_course, make_user):
        await seed_course("c1")
        await make_user("m1", roles=["mentor"])
        response = await client.post(progress_url("c1"), json={"chapterId": "c1-ch1", "action": "add"}, headers=auth_headers("m1"))
        assert response.status_code == 200


class TestCourseRequests:
    @pytest.mark.asyncio
    async def test_approval_grants_course(self, client, auth_headers, seed_course, make_user, fetch):
        await seed_course("c1")
        await make_user("admin", roles=["admin"])

        created = await client.post(
            "/api/v1/courses/c1/requests", json={"amount": 50000, "proofUrl": "https://proof"}, headers=auth_headers("u1")
        )
        assert created.status_code == 201
        request_id = created.json()["id"]

        decided = await client.post(
            f"/api/v1/admin/course-requests/{request_id}/decision",
            json={"decision": "approved"},
            headers=auth_headers("admin"),
        )
        assert decided.status_code == 200
        assert decided.json()["status"] == "approved"
        assert (await fetch(User, "u1")).claimed_courses == ["c1"]

        detail = (await client.get("/api/v1/courses/c1", headers=auth_headers("u1"))).json()
        assert detail["hasAccess"] is True

        again = await client.post(
            f"/api/v1/admin/course-requests/{request_id}/decision",
            json={"decision": "rejected"},
            headers=auth_headers("admin"),
        )
        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_request_for_claimed_course_conflicts(self, client, auth_headers, seed_course, make_user):
        await seed_course("c1")
        await make_user("u1", claimed_courses=["c1"])
        response = await client.post(
            "/api/v1/courses/c1/requests", json={"amount": 50000, "proofUrl": "https://proof"}, headers=auth_headers("u1")
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_rejection_grants_nothing(self, client, auth_headers, seed_course, make_user, fetch):
        await seed_course("c1")
        await make_user("admin", roles=["admin"])
        request_id = (await client.post(
            "/api/v1/courses/c1/requests", json={"amount": 1, "proofUrl": "https://proof"}, headers=auth_headers("u1")
        )).json()["id"]
        await client.post(
            f"/api/v1/admin/course-requests/{request_id}/decision", json={"decision": "rejected"}, headers=auth_headers("admin")
        )
        assert (await fetch(User, "u1")).claimed_courses == []

        listed = (await client.get(
            "/api/v1/admin/course-requests", params={"status": "rejected"}, headers=auth_headers("admin")
        )).json()
        assert [r["id"] for r in listed] == [request_id]
