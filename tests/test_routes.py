"""
Platera Backend — HTTP API Tests
================================

What:  End-to-end requests through create_app() with the test database and
       the fake identity provider.

What we test:
    ✅ /health reports database and identity status
    ✅ Protected routes answer 401 without a session, 200 with one
    ✅ Publish → feed → detail → edit → delete through the API
    ✅ Errors use the standard body (error, message, request_id)
    ✅ Upload signatures validate the batch first
    ✅ Webhook events sync accounts that sign-in then reuses
    ✅ Rate limiting answers 429 with Retry-After
"""

import uuid

import cloudinary.utils
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from platera.middleware.rate_limit import RateLimitMiddleware
from platera.models import User


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


RECIPE_BODY = {
    "title": "Chana Masala",
    "description": "Chickpeas in a spiced tomato gravy",
    "category": "VEG",
    "servings": 4,
    "prep_time": 15,
    "cook_time": 30,
    "ingredients": [{"name": "Chickpeas", "quantity": "2", "unit": "cups"}],
    "steps": ["Soak overnight", "Cook with masala"],
    "images": [],
}


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["identity"] == "available"

    @pytest.mark.asyncio
    async def test_degraded_when_identity_down(self, test_client, identity):
        identity.healthy = False

        data = (await test_client.get("/health")).json()

        assert data["status"] == "degraded"
        assert data["identity"] == "unavailable"

    @pytest.mark.asyncio
    async def test_request_id_header(self, test_client):
        generated = await test_client.get("/health")
        echoed = await test_client.get("/health", headers={"X-Request-ID": "trace-abc"})

        assert len(generated.headers["X-Request-ID"]) == 8
        assert echoed.headers["X-Request-ID"] == "trace-abc"


class TestCurrentUser:

    @pytest.mark.asyncio
    async def test_anonymous_gets_401(self, test_client):
        response = await test_client.get("/api/users/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        body = response.json()
        assert body["error"] == "authentication_required"
        assert "request_id" in body

    @pytest.mark.asyncio
    async def test_unknown_token_gets_401(self, test_client):
        response = await test_client.get("/api/users/me", headers=bearer("forged"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_first_sign_in_creates_account(self, test_client, identity):
        token = identity.sign_in("user_meera", "Meera@Example.com", first_name="Meera")

        first = await test_client.get("/api/users/me", headers=bearer(token))
        second = await test_client.get("/api/users/me", headers=bearer(token))

        assert first.status_code == 200
        assert first.json()["email"] == "meera@example.com"
        assert first.json()["name"] == "Meera"
        assert second.json()["id"] == first.json()["id"]
        assert identity.fetch_calls == ["user_meera"]

    @pytest.mark.asyncio
    async def test_session_cookie_accepted(self, test_client, identity):
        token = identity.sign_in("user_cookie", "cookie@example.com")

        response = await test_client.get("/api/users/me", headers={"Cookie": f"__session={token}"})

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_account_persists_when_first_request_fails(self, test_client, identity, database):
        """The account created on a first sign-in survives a 404 from the route."""
        token = identity.sign_in("user_first", "first@example.com")

        response = await test_client.post(
            f"/api/recipes/{uuid.uuid4()}/comments", json={"content": "Hello"}, headers=bearer(token)
        )

        assert response.status_code == 404
        async with database.session() as session:
            users = (await session.execute(select(User))).scalars().all()
        assert [(u.external_id, u.email) for u in users] == [("user_first", "first@example.com")]

    @pytest.mark.asyncio
    async def test_merge_persists_when_route_fails(self, test_client, identity, database):
        """Duplicate reconciliation is committed before the handler runs."""
        async with database.session() as session:
            session.add(User(email="Twin@example.com", name="Chef"))
            session.add(User(email="twin@example.com", external_id="user_twin", name="Chef"))
        identity.tokens["token-twin"] = "user_twin"

        response = await test_client.delete(f"/api/recipes/{uuid.uuid4()}", headers=bearer("token-twin"))

        assert response.status_code == 404
        async with database.session() as session:
            emails = (await session.execute(select(User.email))).scalars().all()
        assert emails == ["twin@example.com"]


class TestRecipeApi:

    @pytest.mark.asyncio
    async def test_publish_and_browse(self, test_client, identity):
        token = identity.sign_in("user_author", "author@example.com", first_name="Kavya")

        created = await test_client.post("/api/recipes", json=RECIPE_BODY, headers=bearer(token))
        assert created.status_code == 201
        recipe = created.json()
        assert recipe["total_time"] == 45
        assert recipe["author"]["name"] == "Kavya"

        feed = await test_client.get("/api/recipes", params={"category": "VEG", "max_time": 60})
        assert feed.status_code == 200
        assert feed.headers["X-Total-Count"] == "1"
        assert [r["id"] for r in feed.json()["recipes"]] == [recipe["id"]]

        detail = await test_client.get(f"/api/recipes/{recipe['id']}")
        assert detail.status_code == 200
        assert detail.json()["ingredients"][0]["unit"] == "cups"
        assert detail.json()["is_saved"] is False

        mine = await test_client.get("/api/users/me/recipes", headers=bearer(token))
        assert [r["title"] for r in mine.json()] == ["Chana Masala"]

    @pytest.mark.asyncio
    async def test_publish_requires_sign_in(self, test_client):
        response = await test_client.post("/api/recipes", json=RECIPE_BODY)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_sort_rejected(self, test_client):
        response = await test_client.get("/api/recipes", params={"sort": "random"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_recipe_404(self, test_client):
        response = await test_client.get("/api/recipes/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_only_author_can_edit_or_delete(self, test_client, identity):
        author = identity.sign_in("user_author", "author@example.com")
        other = identity.sign_in("user_other", "other@example.com")
        recipe_id = (await test_client.post("/api/recipes", json=RECIPE_BODY, headers=bearer(author))).json()["id"]

        denied = await test_client.patch(
            f"/api/recipes/{recipe_id}", json={"title": "Stolen"}, headers=bearer(other)
        )
        assert denied.status_code == 403
        assert (await test_client.delete(f"/api/recipes/{recipe_id}", headers=bearer(other))).status_code == 403

        edited = await test_client.patch(
            f"/api/recipes/{recipe_id}", json={"cook_time": 45}, headers=bearer(author)
        )
        assert edited.status_code == 200
        assert edited.json()["total_time"] == 60

        deleted = await test_client.delete(f"/api/recipes/{recipe_id}", headers=bearer(author))
        assert deleted.status_code == 204
        assert (await test_client.get(f"/api/recipes/{recipe_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_review_comment_and_save(self, test_client, identity):
        author = identity.sign_in("user_author", "author@example.com")
        reader = identity.sign_in("user_reader", "reader@example.com", first_name="Ravi")
        recipe_id = (await test_client.post("/api/recipes", json=RECIPE_BODY, headers=bearer(author))).json()["id"]

        own_review = await test_client.post(
            f"/api/recipes/{recipe_id}/reviews", json={"rating": 5}, headers=bearer(author)
        )
        assert own_review.status_code == 400
        assert own_review.json()["message"] == "You cannot review your own recipe"

        review = await test_client.post(
            f"/api/recipes/{recipe_id}/reviews", json={"rating": 4, "body": "Great"}, headers=bearer(reader)
        )
        assert review.status_code in (200, 201)

        comment = await test_client.post(
            f"/api/recipes/{recipe_id}/comments", json={"content": "  Spicy!  "}, headers=bearer(reader)
        )
        assert comment.status_code == 201
        assert comment.json()["content"] == "Spicy!"

        saved = await test_client.post(f"/api/recipes/{recipe_id}/save", headers=bearer(reader))
        assert saved.json() == {"recipe_id": recipe_id, "saved": True}

        detail = (await test_client.get(f"/api/recipes/{recipe_id}", headers=bearer(reader))).json()
        assert detail["average_rating"] == 4.0
        assert detail["is_saved"] is True
        assert detail["reviews"][0]["user"]["name"] == "Ravi"
        assert detail["comments"][0]["content"] == "Spicy!"

        bookmarks = await test_client.get("/api/users/me/saved", headers=bearer(reader))
        assert [r["id"] for r in bookmarks.json()] == [recipe_id]


class TestUploadSignature:

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, test_client):
        response = await test_client.post("/api/upload/signature", json={"files": []})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_batch_rejected(self, test_client, identity):
        token = identity.sign_in("user_up", "up@example.com")
        files = [{"name": "anim.gif", "content_type": "image/gif", "size": 1000}]

        response = await test_client.post("/api/upload/signature", json={"files": files}, headers=bearer(token))

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid file type: anim.gif. Only JPEG, PNG, and WebP allowed."

    @pytest.mark.asyncio
    async def test_valid_batch_signed(self, test_client, identity):
        token = identity.sign_in("user_up", "up@example.com")
        files = [{"name": "dish.jpg", "content_type": "image/jpeg", "size": 200_000}]

        response = await test_client.post("/api/upload/signature", json={"files": files}, headers=bearer(token))

        assert response.status_code == 200
        data = response.json()
        assert data["cloud_name"] == "platera-test"
        assert data["folder"] == "platera/recipes"
        assert len(data["signature"]) == 40
        assert data["upload_url"] == "https://api.cloudinary.com/v1_1/platera-test/image/upload"

    @pytest.mark.asyncio
    async def test_client_folder_is_ignored(self, test_client, identity):
        """The signed folder is always the configured one."""
        token = identity.sign_in("user_up", "up@example.com")
        files = [{"name": "dish.jpg", "content_type": "image/jpeg", "size": 200_000}]

        response = await test_client.post(
            "/api/upload/signature",
            json={"files": files, "folder": "someone-elses-folder/../admin"},
            headers=bearer(token),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["folder"] == "platera/recipes"
        assert data["signature"] == cloudinary.utils.api_sign_request(
            {"folder": "platera/recipes", "timestamp": data["timestamp"]}, "test-secret"
        )


class TestClerkWebhook:

    @pytest.mark.asyncio
    async def test_created_event_then_sign_in(self, test_client, identity):
        """A webhook-synced account is found by external id on sign-in; no profile fetch."""
        event = {
            "type": "user.created",
            "object": "event",
            "data": {
                "id": "user_hook",
                "email_addresses": [{"id": "idn_1", "email_address": "Hook@Example.com"}],
                "primary_email_address_id": "idn_1",
                "first_name": "Nila",
                "last_name": None,
            },
        }

        response = await test_client.post("/api/webhooks/clerk", json=event)

        assert response.status_code == 200
        assert response.json() == {"received": True, "type": "user.created", "outcome": "synced"}

        identity.tokens["token-hook"] = "user_hook"
        me = await test_client.get("/api/users/me", headers=bearer("token-hook"))
        assert me.status_code == 200
        assert me.json()["email"] == "hook@example.com"
        assert me.json()["name"] == "Nila"
        assert identity.fetch_calls == []

    @pytest.mark.asyncio
    async def test_deleted_event(self, test_client, database):
        async with database.session() as session:
            session.add(User(email="bye@example.com", external_id="user_bye", name="Chef"))

        response = await test_client.post(
            "/api/webhooks/clerk",
            json={"type": "user.deleted", "data": {"id": "user_bye", "deleted": True}},
        )

        assert response.json()["outcome"] == "deleted"


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_requests_over_limit_get_429(self):
        app = FastAPI()
        app.add_middleware(RateLimitMiddleware, max_requests=2, window=60)

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = [(await client.get("/ping")).status_code for _ in range(3)]
            limited = await client.get("/ping")
            exempt = await client.get("/health")

        assert statuses == [200, 200, 429]
        assert limited.json()["error"] == "rate_limit_exceeded"
        assert int(limited.headers["Retry-After"]) >= 1
        assert exempt.status_code == 200
