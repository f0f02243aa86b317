import httpx
import pytest
import pytest_asyncio

from app.database import get_async_session
from app.limiter import limiter
from app.main import app
from app.services import topic_service
from app.utils.token_utils import create_access_token

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def client(session_factory, services):
    async def _session():
        async with session_factory() as session:
            yield session

    previous = app.state.services
    app.state.services = services
    app.dependency_overrides[get_async_session] = _session
    limiter.enabled = False
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        app.state.services = previous
        limiter.enabled = True


def auth(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


async def test_flow_thread_over_http(client, background, alice, bob):
    r = await client.post("/flows", json={"content": "Anyone up?"}, headers=auth(alice))
    assert r.status_code == 201
    parent = r.json()
    assert parent["slug"] == "anyone-up"
    assert parent["author"]["nickname"] == "Alice A."

    r = await client.post(
        "/flows", json={"content": "Yes!", "parent_id": parent["id"]}, headers=auth(bob)
    )
    assert r.status_code == 201
    assert r.json()["parent"] == {"id": parent["id"], "slug": "anyone-up", "content": "Anyone up?"}
    await background.drain()

    r = await client.get("/flows/anyone-up")
    assert r.json()["reply_count"] == 1

    r = await client.get(f"/flows/{parent['id']}/replies")
    body = r.json()
    assert body["total"] == 1
    assert body["items"][0]["content"] == "Yes!"

    r = await client.get("/flows", params={"page": 1, "limit": 1})
    body = r.json()
    assert (body["total"], body["total_pages"], body["has_next"], body["has_prev"]) == (2, 2, True, False)


async def test_flow_errors_map_to_status_codes(client, alice, bob):
    assert (await client.get("/flows/missing")).status_code == 404
    assert (await client.post("/flows", json={"content": "hi"})).status_code == 401

    r = await client.post("/flows", json={"content": "mine"}, headers=auth(alice))
    slug = r.json()["slug"]
    r = await client.patch(f"/flows/{slug}", json={"content": "not yours"}, headers=auth(bob))
    assert r.status_code == 403
    assert r.json()["detail"]

    r = await client.delete(f"/flows/{slug}", headers=auth(alice))
    assert r.json() == {"ok": True, "deleted": True}
    assert (await client.get(f"/flows/{slug}")).status_code == 404


async def test_post_view_and_visibility_over_http(client, db, background, admin, alice, bob):
    topic = await topic_service.create_topic(db, admin, "Lounge")

    r = await client.post(
        "/forum/posts",
        json={"title": "Hello Lounge", "content": "<p>hi all</p>", "topic_id": topic.id},
        headers=auth(alice),
    )
    assert r.status_code == 201
    post = r.json()
    await background.drain()

    headers = {"X-Client-Id": "device-1"}
    assert (await client.post(f"/forum/posts/{post['id']}/view", headers=headers)).json() == {"counted": True}
    assert (await client.post(f"/forum/posts/{post['id']}/view", headers=headers)).json() == {"counted": False}
    await background.drain()

    r = await client.get("/forum/posts/slug/hello-lounge")
    assert r.status_code == 200
    assert r.json()["view_count"] == 1

    r = await client.patch(f"/forum/posts/{post['id']}", json={"status": False}, headers=auth(alice))
    assert r.status_code == 200
    await background.drain()

    assert (await client.get("/forum/posts/slug/hello-lounge")).status_code == 401
    assert (await client.get("/forum/posts/slug/hello-lounge", headers=auth(bob))).status_code == 403
    assert (await client.get("/forum/posts/slug/hello-lounge", headers=auth(alice))).status_code == 200

    # hidden posts collect no views from callers who cannot read them
    views = f"/forum/posts/{post['id']}/view"
    assert (await client.post(views, headers={"X-Client-Id": "device-2"})).status_code == 401
    assert (await client.post(views, headers={"X-Client-Id": "device-2", **auth(bob)})).status_code == 403
    await background.drain()
    assert (await client.get("/forum/posts/slug/hello-lounge", headers=auth(alice))).json()["view_count"] == 1

    r = await client.get("/forum/posts/library", headers=auth(alice))
    assert r.json()["total"] == 1


async def test_admin_routes_require_admin(client, db, background, admin, alice):
    topic = await topic_service.create_topic(db, admin, "Staff Room")
    r = await client.post(
        "/forum/posts",
        json={"title": "To be removed", "content": "<p>x</p>", "topic_id": topic.id},
        headers=auth(alice),
    )
    post_id = r.json()["id"]
    await background.drain()

    assert (await client.get("/admin/posts", headers=auth(alice))).status_code == 403
    assert (await client.delete(f"/admin/posts/{post_id}", headers=auth(alice))).status_code == 403

    r = await client.put(
        f"/admin/posts/{post_id}/scores",
        json={"score": 3, "upvotes": 4, "downvotes": 1},
        headers=auth(admin),
    )
    assert r.json()["score"] == 3

    r = await client.delete(f"/admin/posts/{post_id}", headers=auth(admin))
    assert r.json() == {"ok": True}

    r = await client.get("/forum/topics")
    assert r.json()[0]["post_count"] == 0


async def test_contact_submission_reaches_admin_inbox(client, admin):
    r = await client.post(
        "/contact",
        json={"name": "Dee", "email": "dee@example.com", "subject": "Hello team", "message": "Hi!"},
    )
    assert r.status_code == 201
    assert r.json()["slug"] == "hello-team"

    r = await client.get("/admin/contacts", headers=auth(admin))
    assert r.json()["total"] == 1

    r = await client.get("/admin/contacts/hello-team", headers=auth(admin))
    assert r.json()["subject"] == "Hello team"
