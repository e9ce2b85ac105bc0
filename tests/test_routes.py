"""Tests for the HTTP boundary: admin invites, registration, health and static pages."""

import asyncio

import httpx
import pytest

from onboarding_server.errors import Forbidden, NotFound
from onboarding_server.main import app
from onboarding_server.routes import build_invite_url, resolve_asset_path

NPUB = "npub10xlxvlhemja6c4dqv22uapctqupfhlxm9h8z3k2e72q4k9hcz7vqpkge6d"
PUBKEY = "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"


def create_invite(client, admin_headers, label=None):
    body = {"label": label} if label is not None else {}
    response = client.post("/invites", json=body, headers=admin_headers)
    assert response.status_code == 201
    return response.json()["token"]


def registration(invite, **overrides):
    data = {
        "invite": invite,
        "storeName": "Generator Goods",
        "npub": NPUB,
        "wooUrl": "https://goods.example.com/",
        "email": "hello@goods.example.com",
    }
    data.update(overrides)
    return data


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestAdminAuth:
    """Admin endpoints reject anything but the configured bearer token."""

    @pytest.mark.parametrize("headers", [
        {},
        {"Authorization": "Bearer wrong-token"},
        {"Authorization": "admin-secret-token"},
        {"Authorization": "Basic admin-secret-token"},
        {"Authorization": "Bearer "},
    ])
    def test_create_invite_unauthorized(self, client, headers):
        response = client.post("/invites", json={"label": "sneaky"}, headers=headers)

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_unauthorized_regardless_of_body(self, client):
        response = client.post(
            "/invites",
            content=b"{this is not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 401

    def test_list_invites_unauthorized(self, client):
        response = client.get("/invites", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_empty_configured_token_rejects_everyone(self, client, settings):
        settings.api_token = ""
        response = client.get("/invites", headers={"Authorization": "Bearer "})
        assert response.status_code == 401


class TestInvites:

    def test_create_invite(self, client, admin_headers):
        response = client.post("/invites", json={"label": "Coffee shop"}, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert len(data["token"]) == 32
        assert data["inviteUrl"] == f"https://onboard.example.com/?invite={data['token']}"

    def test_create_invite_without_body(self, client, admin_headers):
        response = client.post("/invites", headers=admin_headers)
        assert response.status_code == 201

    def test_create_invite_rejects_non_string_label(self, client, admin_headers):
        response = client.post("/invites", json={"label": 42}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_created_invites_listed(self, client, admin_headers):
        first = create_invite(client, admin_headers, label="First")
        second = create_invite(client, admin_headers)

        response = client.get("/invites", headers=admin_headers)

        assert response.status_code == 200
        invites = response.json()["invites"]
        assert set(invites) == {first, second}
        assert invites[first]["token"] == first
        assert invites[first]["label"] == "First"
        assert invites[first]["used"] is False
        assert invites[first]["usedBy"] is None
        assert "createdAt" in invites[first]
        assert invites[second]["label"] is None

    def test_build_invite_url(self):
        assert build_invite_url("https://x.example/", "abc") == "https://x.example/?invite=abc"


class TestRegister:

    def test_register_success(self, client, admin_headers, order_router):
        invite = create_invite(client, admin_headers, label="Goods")

        response = client.post("/register", json=registration(invite))

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["webhookUrl"] == (
            "https://goods.example.com/wp-json/woo-nostr-market/v1/order-webhook"
        )
        assert len(data["webhookSecret"]) == 64

        assert len(order_router.calls) == 1
        assert order_router.calls[0]["json"]["pubkey"] == PUBKEY
        assert order_router.calls[0]["json"]["webhookSecret"] == data["webhookSecret"]

        listed = client.get("/invites", headers=admin_headers).json()["invites"][invite]
        assert listed["used"] is True
        assert listed["usedBy"] == "Generator Goods"
        assert listed["usedAt"] is not None

    def test_register_twice(self, client, admin_headers, order_router):
        invite = create_invite(client, admin_headers)

        first = client.post("/register", json=registration(invite))
        second = client.post("/register", json=registration(invite, storeName="Other"))

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["error"] == "invite_already_used"
        assert len(order_router.calls) == 1

    def test_unknown_invite(self, client, order_router):
        response = client.post("/register", json=registration("0" * 32))

        assert response.status_code == 404
        assert response.json()["error"] == "invalid_invite"
        assert order_router.calls == []

    @pytest.mark.parametrize("field", ["storeName", "npub", "wooUrl"])
    def test_missing_field(self, client, admin_headers, order_router, field):
        invite = create_invite(client, admin_headers)
        body = registration(invite)
        del body[field]

        response = client.post("/register", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "missing_field"
        assert response.json()["field"] == field
        assert order_router.calls == []

    def test_invalid_npub(self, client, admin_headers, order_router):
        invite = create_invite(client, admin_headers)

        response = client.post("/register", json=registration(invite, npub="npub1qqqq"))

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_identifier"
        assert order_router.calls == []

    def test_downstream_failure(self, client, admin_headers, order_router):
        invite = create_invite(client, admin_headers)
        order_router.status_code = 409
        order_router.body = {"error": "merchant exists"}

        response = client.post("/register", json=registration(invite))

        assert response.status_code == 502
        data = response.json()
        assert data["error"] == "downstream_registration_failed"
        assert data["downstream_status"] == 409
        assert "merchant exists" in data["message"]

        listed = client.get("/invites", headers=admin_headers).json()["invites"][invite]
        assert listed["used"] is False

    def test_secret_not_written_to_snapshot(self, client, admin_headers, store):
        invite = create_invite(client, admin_headers)

        secret = client.post("/register", json=registration(invite)).json()["webhookSecret"]

        assert secret not in store.path.read_text()

    @pytest.mark.asyncio
    async def test_concurrent_requests_on_one_invite(self, client, store, order_router):
        invite = await store.create()
        order_router.delay = 0.05

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://onboard.test") as http:
            responses = await asyncio.gather(
                http.post("/register", json=registration(invite.token, storeName="First")),
                http.post("/register", json=registration(invite.token, storeName="Second")),
            )

        assert sorted(r.status_code for r in responses) == [200, 409]
        rejected = next(r for r in responses if r.status_code == 409)
        assert rejected.json()["error"] == "invite_already_used"
        assert len(order_router.calls) == 1
        assert (await store.get(invite.token)).used is True


class TestStatic:

    def test_index_served_at_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Join the market" in response.text
        assert response.headers["content-type"].startswith("text/html")

    def test_asset_served(self, client):
        response = client.get("/app.js")
        assert response.status_code == 200
        assert "onboarding" in response.text

    def test_missing_asset(self, client):
        response = client.get("/missing.css")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
    def test_unknown_route_any_method(self, client, method):
        response = client.request(method, "/nope")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_unmatched_method_on_api_path(self, client):
        response = client.post("/health")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_resolve_asset_path_inside_root(self, static_dir):
        assert resolve_asset_path(str(static_dir), "") == (static_dir / "index.html").resolve()
        assert resolve_asset_path(str(static_dir), "app.js") == (static_dir / "app.js").resolve()

    @pytest.mark.parametrize("path", ["../secret.txt", "../../etc/passwd", "/etc/passwd", "a/../../secret.txt"])
    def test_resolve_asset_path_rejects_traversal(self, static_dir, path):
        (static_dir.parent / "secret.txt").write_text("keep out")
        with pytest.raises(Forbidden):
            resolve_asset_path(str(static_dir), path)

    def test_resolve_asset_path_missing(self, static_dir):
        with pytest.raises(NotFound):
            resolve_asset_path(str(static_dir), "nope.html")


class TestCors:

    def test_preflight(self, client):
        response = client.options(
            "/register",
            headers={
                "Origin": "https://shop.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_simple_request_has_cors_header(self, client):
        response = client.get("/health", headers={"Origin": "https://shop.example.com"})
        assert response.headers["access-control-allow-origin"] == "*"
