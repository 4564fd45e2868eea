from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, unquote

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

import pointshop.models  # noqa: F401
from pointshop.core.config import Settings
from pointshop.core.database import Base, build_session_factory
from pointshop.main import create_app
from pointshop.services.approval_dispatcher import ApprovalDispatcher
from pointshop.services.catalog_service import load_catalog
from pointshop.services.credential_service import IdentityProviderClient
from pointshop.services.review_channel import DiscordReviewChannel

SIGNING_KEY = "test-signing-key-0123456789abcdef0123456789"
USER_ID = "80351110224678912"
VALID_CODE = "valid-code"
ACCESS_TOKEN = "provider-access-token"


@dataclass
class FakeDiscord:
    """In-memory stand-in for the Discord REST API."""

    requests: list[httpx.Request] = field(default_factory=list)
    messages: list[dict[str, Any]] = field(default_factory=list)
    reactions_added: list[tuple[str, str]] = field(default_factory=list)
    reactors: dict[tuple[str, str], list[dict[str, Any]]] = field(default_factory=dict)
    fail_posts: bool = False
    failing_reactions: set[str] = field(default_factory=set)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = unquote(request.url.path)

        if request.method == "GET" and "/users/" in path:
            user_id = path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"id": user_id, "username": "nelly", "global_name": "Nelly", "avatar": None})

        if request.method == "POST" and path.endswith("/messages"):
            if self.fail_posts:
                return httpx.Response(503, json={"message": "unavailable"})
            message_id = f"msg-{len(self.messages) + 1}"
            self.messages.append({"id": message_id, **json.loads(request.content)})
            return httpx.Response(200, json={"id": message_id})

        if "/reactions/" in path:
            message_id = path.split("/messages/")[1].split("/")[0]
            emoji = path.split("/reactions/")[1].split("/")[0]
            if request.method == "PUT":
                if emoji in self.failing_reactions:
                    return httpx.Response(503, json={"message": "unavailable"})
                self.reactions_added.append((message_id, emoji))
                self.reactors.setdefault((message_id, emoji), []).append({"id": "bot", "bot": True})
                return httpx.Response(204)
            return httpx.Response(200, json=self.reactors.get((message_id, emoji), []))

        return httpx.Response(404, json={"message": "Unknown route"})


def identity_provider_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/oauth2/token"):
        form = parse_qs(request.content.decode())
        if form.get("code") == [VALID_CODE] and form.get("grant_type") == ["authorization_code"]:
            return httpx.Response(200, json={"access_token": ACCESS_TOKEN, "token_type": "Bearer"})
        return httpx.Response(400, json={"error": "invalid_grant"})

    if request.url.path.endswith("/users/@me"):
        if request.headers.get("Authorization") != f"Bearer {ACCESS_TOKEN}":
            return httpx.Response(401, json={"message": "401: Unauthorized"})
        return httpx.Response(
            200,
            json={"id": USER_ID, "username": "nelly", "global_name": "Nelly", "avatar": "a1b2c3", "discriminator": "0"},
        )

    return httpx.Response(404)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        session_signing_key=SIGNING_KEY,
        oauth_client_id="client-id",
        oauth_client_secret="client-secret",
        discord_bot_token="bot-token",
        review_channel_id="review-channel",
        ledger_timeout_seconds=5.0,
    )


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def discord() -> FakeDiscord:
    return FakeDiscord()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pointshop.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield build_session_factory(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def review_channel(discord, settings):
    channel = DiscordReviewChannel(
        bot_token=settings.discord_bot_token,
        channel_id=settings.review_channel_id,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(discord.handler)),
    )
    try:
        yield channel
    finally:
        await channel.aclose()


@pytest_asyncio.fixture
async def identity_provider(settings):
    provider = IdentityProviderClient(
        client_id=settings.oauth_client_id,
        client_secret=settings.oauth_client_secret,
        redirect_uri=settings.oauth_redirect_uri,
        token_url=settings.oauth_token_url,
        profile_url=settings.oauth_profile_url,
        avatar_cdn_url=settings.avatar_cdn_url,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(identity_provider_handler)),
    )
    try:
        yield provider
    finally:
        await provider.aclose()


@pytest.fixture
def dispatcher(review_channel, session_factory) -> ApprovalDispatcher:
    return ApprovalDispatcher(review_channel, session_factory=session_factory)


@pytest_asyncio.fixture
async def app_with_db(settings, session_factory, identity_provider, review_channel):
    app = create_app(
        settings,
        session_factory=session_factory,
        identity_provider=identity_provider,
        review_channel=review_channel,
    )
    yield app, session_factory
