"""Shared fixtures for the onboarding server test suite."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from onboarding_server.config import Settings, get_settings
from onboarding_server.main import app
from onboarding_server.services.order_router import OrderRouterClient, get_order_router
from onboarding_server.store import JsonFileInviteStore

ADMIN_TOKEN = "admin-secret-token"


class FakeOrderRouter:
    """Stands in for the order router and records every registration."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.status_code = 201
        self.body = {"success": True}
        self.delay = 0.0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append({
            "url": str(request.url),
            "headers": dict(request.headers),
            "json": json.loads(request.content),
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        return httpx.Response(self.status_code, json=self.body)

    def client(self) -> OrderRouterClient:
        return OrderRouterClient(
            base_url="http://order-router.test",
            api_token=ADMIN_TOKEN,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture()
def static_dir(tmp_path: Path) -> Path:
    """Asset root with a minimal onboarding page."""
    root = tmp_path / "static"
    root.mkdir()
    (root / "index.html").write_text("<html><body>Join the market</body></html>")
    (root / "app.js").write_text("console.log('onboarding');")
    return root


@pytest.fixture()
def settings(tmp_path: Path, static_dir: Path) -> Settings:
    return Settings(
        api_token=ADMIN_TOKEN,
        invites_file=str(tmp_path / "invites.json"),
        static_dir=str(static_dir),
        public_base_url="https://onboard.example.com/",
        order_router_url="http://order-router.test",
    )


@pytest.fixture()
def store(settings: Settings) -> JsonFileInviteStore:
    return JsonFileInviteStore(settings.invites_file)


@pytest.fixture()
def order_router() -> FakeOrderRouter:
    return FakeOrderRouter()


@pytest.fixture()
def client(settings: Settings, store: JsonFileInviteStore, order_router: FakeOrderRouter):
    """Test client wired to a temporary store and a fake order router."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_order_router] = order_router.client
    app.state.invite_store = store

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.state.invite_store = None


@pytest.fixture()
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
