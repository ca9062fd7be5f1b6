"""HTTP surface: envelope, status codes and end-to-end scenarios."""

from typing import AsyncGenerator

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from lexforum.core.database import get_db
from lexforum.core.security import CallerContext
from lexforum.main import app
from lexforum.models.user import User

BASE = "/api/v1/forums"

ADMIN_7 = CallerContext(user_id=1, organization_id=7, roles=("admin",))
MEMBER_7 = CallerContext(user_id=2, organization_id=7)
USER_9 = CallerContext(user_id=3, organization_id=9)
PUBLIC = CallerContext(user_id=4)


async def _create_forum(client, headers_for, caller, forum_type="organizational"):
    resp = await client.post(
        BASE,
        json={"name": "Case team", "type": forum_type},
        headers=headers_for(caller),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _create_thread(client, headers_for, caller, forum_id, **body):
    payload = {"title": "Strategy", "content": "X", **body}
    resp = await client.post(
        f"{BASE}/{forum_id}/threads", json=payload, headers=headers_for(caller)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def test_health(api_client):
    resp = await api_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_missing_identity_is_rejected(api_client):
    resp = await api_client.get(BASE)
    assert resp.status_code == 403
    assert resp.json() == {
        "success": False,
        "error": {"kind": "authorization_error", "message": "Missing caller identity"},
    }


async def test_organizational_forum_scenario(api_client, headers_for):
    forum = await _create_forum(api_client, headers_for, ADMIN_7)
    assert forum["organizationId"] == 7
    assert forum["createdByUserId"] == 1

    thread = await _create_thread(api_client, headers_for, MEMBER_7, forum["id"])
    assert thread["userId"] == 2
    assert thread["forum"]["id"] == forum["id"]

    resp = await api_client.post(
        f"{BASE}/{forum['id']}/threads",
        json={"title": "Nope", "content": "Nope"},
        headers=headers_for(USER_9),
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["kind"] == "authorization_error"

    listed = await api_client.get(BASE, headers=headers_for(USER_9))
    assert listed.json()["data"] == []


async def test_thread_edit_and_views(api_client, headers_for):
    forum = await _create_forum(api_client, headers_for, ADMIN_7)
    thread = await _create_thread(api_client, headers_for, MEMBER_7, forum["id"])
    url = f"{BASE}/{forum['id']}/threads/{thread['id']}"

    resp = await api_client.put(url, json={"content": "Y"}, headers=headers_for(ADMIN_7))
    assert resp.status_code == 403

    resp = await api_client.put(url, json={"content": "Y"}, headers=headers_for(MEMBER_7))
    assert resp.status_code == 200
    assert resp.json()["data"]["content"] == "Y"
    assert resp.json()["data"]["updatedAt"] != thread["updatedAt"]

    for expected in (1, 2, 3):
        resp = await api_client.get(url, headers=headers_for(MEMBER_7))
        assert resp.json()["data"]["viewCount"] == expected


async def test_closed_thread_returns_conflict(api_client, headers_for):
    forum = await _create_forum(api_client, headers_for, ADMIN_7)
    thread = await _create_thread(api_client, headers_for, MEMBER_7, forum["id"])
    url = f"{BASE}/{forum['id']}/threads/{thread['id']}"

    resp = await api_client.put(url, json={"isClosed": True}, headers=headers_for(ADMIN_7))
    assert resp.json()["data"]["isClosed"] is True

    resp = await api_client.post(
        f"{url}/posts", json={"content": "late"}, headers=headers_for(MEMBER_7)
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["kind"] == "thread_closed"


async def test_posts_reactions_and_tombstone(api_client, headers_for):
    forum = await _create_forum(api_client, headers_for, PUBLIC, "lawyer_advice")
    thread = await _create_thread(api_client, headers_for, MEMBER_7, forum["id"])
    posts_url = f"{BASE}/{forum['id']}/threads/{thread['id']}/posts"

    p1 = (
        await api_client.post(posts_url, json={"content": "P1"}, headers=headers_for(MEMBER_7))
    ).json()["data"]
    p2 = (
        await api_client.post(
            posts_url,
            json={"content": "P2", "parentPostId": p1["id"]},
            headers=headers_for(USER_9),
        )
    ).json()["data"]
    assert p2["parentPost"]["id"] == p1["id"]

    reactions_url = f"{posts_url}/{p2['id']}/reactions"
    for _ in range(2):
        resp = await api_client.post(
            reactions_url, json={"reactionType": "helpful"}, headers=headers_for(PUBLIC)
        )
        assert resp.status_code == 200
    assert resp.json()["data"]["reactionCounts"] == {"like": 0, "helpful": 1, "insightful": 0}

    resp = await api_client.delete(f"{reactions_url}/like", headers=headers_for(PUBLIC))
    assert resp.json()["data"]["reactionCounts"]["helpful"] == 1

    resp = await api_client.delete(f"{posts_url}/{p1['id']}", headers=headers_for(MEMBER_7))
    assert resp.json() == {"success": True, "message": "Post deleted"}

    resp = await api_client.get(posts_url, headers=headers_for(PUBLIC))
    body = resp.json()
    assert [p["id"] for p in body["data"]] == [p2["id"]]
    assert body["data"][0]["parentPostId"] == p1["id"]
    assert body["data"][0]["parentPost"] is None
    assert body["data"][0]["userReactions"] == ["helpful"]
    assert body["pagination"] == {"total": 1, "limit": 50, "offset": 0, "hasMore": False}


async def test_cross_thread_parent_is_validation_error(api_client, headers_for):
    forum = await _create_forum(api_client, headers_for, ADMIN_7)
    t1 = await _create_thread(api_client, headers_for, MEMBER_7, forum["id"])
    t2 = await _create_thread(api_client, headers_for, MEMBER_7, forum["id"], title="Other")
    base = f"{BASE}/{forum['id']}/threads"

    p1 = (
        await api_client.post(
            f"{base}/{t1['id']}/posts", json={"content": "x"}, headers=headers_for(MEMBER_7)
        )
    ).json()["data"]
    resp = await api_client.post(
        f"{base}/{t2['id']}/posts",
        json={"content": "y", "parentPostId": p1["id"]},
        headers=headers_for(MEMBER_7),
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["kind"] == "validation_error"


async def test_thread_listing_query_params(api_client, headers_for):
    forum = await _create_forum(api_client, headers_for, ADMIN_7)
    for title in ("Alpha", "Beta", "alphabet"):
        await _create_thread(api_client, headers_for, MEMBER_7, forum["id"], title=title)

    resp = await api_client.get(
        f"{BASE}/{forum['id']}/threads",
        params={"search": "ALPHA", "limit": 1},
        headers=headers_for(MEMBER_7),
    )
    body = resp.json()
    assert len(body["data"]) == 1
    assert body["pagination"] == {"total": 2, "limit": 1, "offset": 0, "hasMore": True}

    resp = await api_client.get(
        f"{BASE}/{forum['id']}/threads",
        params={"limit": 500},
        headers=headers_for(MEMBER_7),
    )
    assert resp.status_code == 422


async def test_category_crud_and_stats(api_client, headers_for):
    forum = await _create_forum(api_client, headers_for, ADMIN_7)
    categories_url = f"{BASE}/{forum['id']}/categories"

    resp = await api_client.post(
        categories_url, json={"name": "Intake"}, headers=headers_for(MEMBER_7)
    )
    assert resp.status_code == 403

    resp = await api_client.post(
        categories_url, json={"name": "Intake"}, headers=headers_for(ADMIN_7)
    )
    category = resp.json()["data"]
    assert category["displayOrder"] == 0

    await _create_thread(
        api_client, headers_for, MEMBER_7, forum["id"], categoryId=category["id"]
    )
    resp = await api_client.get(
        f"{BASE}/{forum['id']}/stats", headers=headers_for(MEMBER_7)
    )
    assert resp.json()["data"] == {"forumId": forum["id"], "categoryCount": 1, "threadCount": 1}

    resp = await api_client.delete(
        f"{categories_url}/{category['id']}", headers=headers_for(ADMIN_7)
    )
    assert resp.status_code == 200

    resp = await api_client.get(
        f"{BASE}/{forum['id']}/threads", headers=headers_for(MEMBER_7)
    )
    assert resp.json()["data"][0]["categoryId"] is None


async def test_unknown_forum_is_not_found(api_client, headers_for):
    resp = await api_client.get(f"{BASE}/12345", headers=headers_for(ADMIN_7))
    assert resp.status_code == 404
    assert resp.json()["error"]["kind"] == "not_found"


async def test_forum_carries_creator_summary(api_client, headers_for, session_factory):
    async with session_factory() as session:
        session.add(
            User(id=1, email="ada@firm-a.test", first_name="Ada", last_name="Admin", organization_id=7)
        )
        await session.commit()

    created = await _create_forum(api_client, headers_for, ADMIN_7)
    assert created["creator"] == {
        "id": 1,
        "firstName": "Ada",
        "lastName": "Admin",
        "email": "ada@firm-a.test",
    }

    resp = await api_client.get(BASE, headers=headers_for(MEMBER_7))
    assert resp.json()["data"][0]["creator"]["firstName"] == "Ada"


async def test_failed_commit_returns_internal_error(api_client, headers_for, session_factory):
    working_get_db = app.dependency_overrides[get_db]

    async def failing_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:

            async def commit() -> None:
                raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

            session.commit = commit
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = failing_get_db
    resp = await api_client.post(
        BASE,
        json={"name": "Case team", "type": "organizational"},
        headers=headers_for(ADMIN_7),
    )
    app.dependency_overrides[get_db] = working_get_db

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["kind"] == "internal_error"
    assert body["error"]["correlationId"]
    assert "disk I/O" not in body["error"]["message"]

    listed = await api_client.get(BASE, headers=headers_for(ADMIN_7))
    assert listed.json()["data"] == []
