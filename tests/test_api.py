import json
import time
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from db import Base, get_db
from errors import RemoteUnreachable, StoreReadError
from main import app
from routers import bindings as bindings_router
from settings import settings
from telegram_auth import create_token, sign_init_data


class FakeRemote:
    def __init__(self):
        self.commands = []
        self.error = None

    async def execute(self, config, command):
        self.commands.append(command)
        if self.error is not None:
            raise self.error
        return "ok"


@pytest.fixture
def remote(monkeypatch):
    fake = FakeRemote()
    monkeypatch.setattr(bindings_router, "rcon_client", fake)
    return fake


@pytest.fixture
def client(remote):
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    schema_ready = False

    async def override_get_db():
        nonlocal schema_ready
        if not schema_ready:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            schema_ready = True
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    # https so the Secure auth cookies are sent back
    with TestClient(app, base_url="https://testserver") as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(tg_user_id):
    token = create_token(token_type="access", subject=str(tg_user_id), ttl_seconds=60)
    return {"Authorization": f"Bearer {token}"}


def signed_init_data(tg_user_id, auth_date=None):
    fields = {
        "auth_date": str(auth_date or int(time.time())),
        "query_id": "AAH-test",
        "user": json.dumps({"id": tg_user_id, "username": "steve_fan"}),
    }
    fields["hash"] = sign_init_data(fields, settings.bot_token)
    return urlencode(fields)


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_login_issues_tokens_that_identify_the_caller(client):
    resp = client.post("/auth/telegram-webapp", json={"initData": signed_init_data(1001)})

    assert resp.status_code == 200
    body = resp.json()
    assert body["tg_user_id"] == 1001
    assert "access_token" in resp.cookies

    me = client.get("/bindings/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["result"] == {"kind": "not_bound", "platform_user_id": 1001, "game_account_name": None}


def test_login_rejects_tampered_init_data(client):
    tampered = signed_init_data(1001).replace("steve_fan", "someone_else")

    resp = client.post("/auth/telegram-webapp", json={"initData": tampered})

    assert resp.status_code == 401


def test_login_rejects_stale_init_data(client):
    stale = signed_init_data(1001, auth_date=int(time.time()) - settings.initdata_max_age_seconds - 60)

    assert client.post("/auth/telegram-webapp", json={"initData": stale}).status_code == 401


def test_refresh_rotates_tokens_from_cookie(client):
    client.post("/auth/telegram-webapp", json={"initData": signed_init_data(1001)})

    resp = client.post("/auth/refresh")

    assert resp.status_code == 200
    assert resp.json()["access_token"]


def test_bindings_require_access_token(client):
    assert client.get("/bindings/me").status_code == 401
    refresh = create_token(token_type="refresh", subject="1001", ttl_seconds=60)
    assert client.get("/bindings/me", headers={"Authorization": f"Bearer {refresh}"}).status_code == 401


def test_bind_query_unbind_flow(client, remote):
    bound = client.post("/bindings", json={"game_account_name": "Steve"}, headers=auth_headers(1001))
    assert bound.status_code == 200
    assert bound.json()["ok"] is True
    assert bound.json()["kind"] == "bound"
    assert "Bound successfully" in bound.json()["message"]

    again = client.post("/bindings", json={"game_account_name": "Alex"}, headers=auth_headers(1001))
    assert again.json()["kind"] == "already_bound"
    assert again.json()["ok"] is False

    taken = client.post("/bindings", json={"game_account_name": "Steve"}, headers=auth_headers(1002))
    assert taken.json()["result"] == {"kind": "account_taken", "platform_user_id": 1001}

    by_account = client.get("/bindings/by-account/Steve", headers=auth_headers(1002))
    assert by_account.json()["kind"] == "found"
    assert by_account.json()["result"]["binding"]["platform_user_id"] == 1001

    unbound = client.delete("/bindings/me", headers=auth_headers(1001))
    assert unbound.json()["kind"] == "unbound"
    assert client.get("/bindings/me", headers=auth_headers(1001)).json()["kind"] == "not_bound"

    assert remote.commands == ["whitelist add Steve", "whitelist remove Steve"]


def test_bind_with_empty_name_is_bad_request(client, remote):
    resp = client.post("/bindings", json={"game_account_name": "  "}, headers=auth_headers(1001))

    assert resp.status_code == 400
    assert remote.commands == []


def test_mirror_failures_are_reported_not_raised(client, remote):
    remote.error = RemoteUnreachable("server offline")

    bound = client.post("/bindings", json={"game_account_name": "Steve"}, headers=auth_headers(1001))
    assert bound.status_code == 200
    assert bound.json()["kind"] == "bound_mirror_failed"
    assert bound.json()["result"]["error_detail"] == "server offline"

    unbound = client.delete("/bindings/me", headers=auth_headers(1001))
    assert unbound.json()["kind"] == "unbound_mirror_failed"
    assert client.get("/bindings/me", headers=auth_headers(1001)).json()["kind"] == "not_bound"


def test_store_failure_is_generic_service_error(client, remote, monkeypatch):
    async def broken(self, platform_user_id):
        raise StoreReadError("database is gone")

    monkeypatch.setattr("binding_store.BindingStore.find_by_platform_user", broken)

    resp = client.post("/bindings", json={"game_account_name": "Steve"}, headers=auth_headers(1001))

    assert resp.status_code == 503
    assert "database is gone" not in resp.text
    assert remote.commands == []
