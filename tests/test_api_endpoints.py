from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from pointshop.services.credential_service import verify_session
from pointshop.services.ledger_store import LedgerStore

from .conftest import SIGNING_KEY, USER_ID, VALID_CODE


def _client(app, **transport_options) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app, **transport_options), base_url="http://test")


async def _login(client: AsyncClient) -> str:
    response = await client.get("/api/v1/auth/login", params={"code": VALID_CODE})
    assert response.status_code == 200
    return response.json()["session_credential"]


@pytest.mark.asyncio
async def test_health(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.get("/api/v1/health")

    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_login_returns_credential_and_account(app_with_db) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        await LedgerStore(session).credit_points(USER_ID, 100)

    async with _client(app) as client:
        response = await client.get("/api/v1/auth/login", params={"code": VALID_CODE})

    assert response.status_code == 200
    body = response.json()
    assert body["error"] is False
    assert verify_session(body["session_credential"], signing_key=SIGNING_KEY) == USER_ID
    assert body["identity"]["user_id"] == USER_ID
    assert body["identity"]["display_name"] == "Nelly"
    assert body["balance"] == {"user_id": USER_ID, "points": 100}
    assert body["history"] == []
    assert {product["id"] for product in body["catalog"]} >= {"gift-card-5"}


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{"code": "expired-code"}, {}])
async def test_login_failure_issues_no_credential(app_with_db, params) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.get("/api/v1/auth/login", params=params)

    assert response.status_code == 401
    assert response.json() == {"error": True}


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/v1/session/refresh", "/api/v1/history"])
async def test_protected_routes_require_credential(app_with_db, path) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        missing = await client.get(path)
        forged = await client.get(path, headers={"Authorization": "Bearer forged.token.value"})

    assert missing.status_code == 401
    assert missing.json()["error"] is True
    assert forged.status_code == 401
    assert forged.json()["error"] is True


@pytest.mark.asyncio
async def test_redeem_flow(app_with_db, discord) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        await LedgerStore(session).credit_points(USER_ID, 100)

    async with _client(app) as client:
        credential = await _login(client)
        headers = {"Authorization": f"Bearer {credential}"}

        redeemed = await client.post(
            "/api/v1/redeem",
            json={"product_id": "gift-card-5", "contact_email": "nelly@example.com"},
            headers=headers,
        )
        await app.state.dispatcher.drain()

        assert redeemed.status_code == 201
        body = redeemed.json()
        assert body["error"] is False
        assert body["balance"]["points"] == 40
        assert len(body["history"]) == 1
        assert body["history"][0]["points_spent"] == 60
        assert body["history"][0]["status"] == "pending-approval"
        assert len(discord.messages) == 1

        again = await client.post(
            "/api/v1/redeem",
            json={"product_id": "gift-card-5", "contact_email": "nelly@example.com"},
            headers=headers,
        )
        assert again.status_code == 409
        assert again.json() == {"error": True, "message": "Not enough points (20 more needed)"}

        history = await client.get("/api/v1/history", headers=headers)
        assert history.status_code == 200
        assert [row["transaction_id"] for row in history.json()["history"]] == [
            body["history"][0]["transaction_id"]
        ]

        refreshed = await client.get("/api/v1/session/refresh", headers=headers)
        assert refreshed.json()["balance"]["points"] == 40
        assert len(refreshed.json()["catalog"]) > 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, status_code, message",
    [
        ({"product_id": "gift-card-5", "contact_email": "not-an-email"}, 400, "Invalid email address"),
        ({"product_id": "gift-card-5"}, 400, "Product and contact email are required"),
        ({"product_id": "yacht", "contact_email": "nelly@example.com"}, 404, "Product yacht not found"),
    ],
)
async def test_redeem_errors_are_flagged(app_with_db, discord, payload, status_code, message) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        await LedgerStore(session).credit_points(USER_ID, 100)

    async with _client(app) as client:
        credential = await _login(client)
        response = await client.post(
            "/api/v1/redeem",
            json=payload,
            headers={"Authorization": f"Bearer {credential}"},
        )

    assert response.status_code == status_code
    assert response.json() == {"error": True, "message": message}
    assert discord.messages == []
    async with session_factory() as session:
        assert await LedgerStore(session).get_balance(USER_ID) == 100


@pytest.mark.asyncio
async def test_public_catalog(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.get("/api/v1/catalog")

    assert response.status_code == 200
    assert response.json()[0]["id"] == "gift-card-5"


@pytest.mark.asyncio
async def test_redeem_survives_failed_account_refresh(app_with_db, discord, monkeypatch) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        await LedgerStore(session).credit_points(USER_ID, 100)

    async def broken_history(self, user_id, *, limit=100):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    # raise_app_exceptions=False: the server error middleware re-raises after responding
    async with _client(app, raise_app_exceptions=False) as client:
        credential = await _login(client)
        headers = {"Authorization": f"Bearer {credential}"}
        monkeypatch.setattr(LedgerStore, "get_history", broken_history)

        redeemed = await client.post(
            "/api/v1/redeem",
            json={"product_id": "gift-card-5", "contact_email": "nelly@example.com"},
            headers=headers,
        )
        await app.state.dispatcher.drain()
        history = await client.get("/api/v1/history", headers=headers)

    assert redeemed.status_code == 201
    body = redeemed.json()
    assert body["error"] is False
    assert body["balance"]["points"] == 40
    assert body["history"][0]["status"] == "pending-approval"
    assert len(discord.messages) == 1

    assert history.status_code == 500
    assert history.json() == {"error": True, "message": "Internal error"}
