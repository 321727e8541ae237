"""Tests for AuthService"""

import json

import httpx
import pytest

from farmconsole.application.auth_service import AuthService
from farmconsole.domain.config.auth import AuthConfig, Portal
from farmconsole.domain.config.client import ClientConfig
from farmconsole.domain.errors import ClientError, ParseError, Unauthorized
from farmconsole.infrastructure.http_client import ApiClient
from farmconsole.infrastructure.token_store import InMemoryTokenStore


def _make_service(handler, portal=Portal.ADMIN, store=None):
    store = store or InMemoryTokenStore()
    client = ApiClient(
        ClientConfig(base_url="http://api.test", max_retries=0),
        store,
        transport=httpx.MockTransport(handler),
    )
    return AuthService(client, store, AuthConfig(portal=portal, token_ttl_days=1)), client, store


@pytest.mark.asyncio
async def test_admin_login_stores_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"accessToken": "admin-jwt"})

    auth, client, store = _make_service(handler)
    async with client:
        response = await auth.login("ops@farm.test", "hunter2")

    assert response == {"accessToken": "admin-jwt"}
    assert store.get_value() == "admin-jwt"
    assert store.get().expires_at is not None
    assert auth.is_authenticated() is True
    assert seen[0].url.path == "/admins/login"
    assert json.loads(seen[0].content) == {"email": "ops@farm.test", "password": "hunter2"}


@pytest.mark.asyncio
async def test_admin_login_without_token_leaves_store_empty():
    auth, client, store = _make_service(lambda request: httpx.Response(200, json={"message": "ok"}))
    async with client:
        await auth.login("ops@farm.test", "hunter2")

    assert auth.is_authenticated() is False


@pytest.mark.asyncio
async def test_admin_login_rejected():
    auth, client, store = _make_service(
        lambda request: httpx.Response(400, json={"message": "Invalid credentials"})
    )
    async with client:
        with pytest.raises(ClientError, match="Invalid credentials"):
            await auth.login("ops@farm.test", "wrong")

    assert store.get() is None


@pytest.mark.asyncio
async def test_email_login_refused_on_staff_portal():
    seen = []
    auth, client, store = _make_service(lambda request: seen.append(request), portal=Portal.STAFF)

    async with client:
        with pytest.raises(ValueError, match="admin portal"):
            await auth.login("ops@farm.test", "hunter2")

    assert seen == []
    assert store.get() is None


@pytest.mark.asyncio
async def test_staff_login_reads_nested_token():
    body = {"success": True, "data": {"accessToken": "staff-jwt", "staff": {"id": "s-1"}}}
    auth, client, store = _make_service(lambda request: httpx.Response(200, json=body), portal=Portal.STAFF)

    async with client:
        data = await auth.staff_login("08012345678", "1234")

    assert data["staff"] == {"id": "s-1"}
    assert store.get_value() == "staff-jwt"


@pytest.mark.asyncio
async def test_staff_login_malformed_response():
    auth, client, store = _make_service(
        lambda request: httpx.Response(200, json={"success": False}), portal=Portal.STAFF
    )
    async with client:
        with pytest.raises(ParseError, match="Invalid response format"):
            await auth.staff_login("08012345678", "1234")

    assert store.get() is None


def test_logout_is_idempotent():
    store = InMemoryTokenStore()
    store.set("abc")
    auth, _, _ = _make_service(lambda request: httpx.Response(200), store=store)

    auth.logout()
    auth.logout()

    assert auth.is_authenticated() is False


@pytest.mark.asyncio
async def test_admin_introspect_posts():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "a-1", "role": "super_admin"})

    store = InMemoryTokenStore()
    store.set("admin-jwt")
    auth, client, _ = _make_service(handler, store=store)
    async with client:
        info = await auth.introspect()

    assert info["role"] == "super_admin"
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/admins/introspect"
    assert seen[0].headers["Authorization"] == "Bearer admin-jwt"


@pytest.mark.asyncio
async def test_staff_introspect_reads_profile():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "s-1"})

    auth, client, _ = _make_service(handler, portal=Portal.STAFF)
    async with client:
        await auth.introspect()

    assert seen[0].method == "GET"
    assert seen[0].url.path == "/staff/profile"


@pytest.mark.asyncio
async def test_update_profile_drops_unset_fields():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"firstName": "Ada"})

    auth, client, _ = _make_service(handler)
    async with client:
        await auth.update_profile(firstName="Ada", phone=None)

    assert seen[0].method == "PATCH"
    assert json.loads(seen[0].content) == {"firstName": "Ada"}


@pytest.mark.asyncio
async def test_expired_session_logs_out():
    store = InMemoryTokenStore()
    store.set("stale")
    auth, client, _ = _make_service(lambda request: httpx.Response(401), store=store)

    async with client:
        with pytest.raises(Unauthorized):
            await auth.get_profile()

    assert auth.is_authenticated() is False
