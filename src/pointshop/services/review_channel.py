"""Discord REST client for the human review channel."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..core.errors import DependencyError
from ..schemas import Identity

logger = logging.getLogger(__name__)

# Discord API limits
MAX_FIELD_VALUE_LENGTH = 1024
MAX_REACTORS_PER_PAGE = 100


class DiscordReviewChannel:
    """Posts review messages to one channel and reads reactions back from it."""

    def __init__(
        self,
        *,
        bot_token: str,
        channel_id: str,
        api_url: str = "https://discord.com/api/v10",
        avatar_cdn_url: str = "https://cdn.discordapp.com",
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.channel_id = channel_id
        self.api_url = api_url.rstrip("/")
        self.avatar_cdn_url = avatar_cdn_url.rstrip("/")
        self._headers = {"Authorization": f"Bot {bot_token}"}
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, f"{self.api_url}{path}", headers=self._headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DependencyError(f"Discord {method} {path} failed: {exc}") from exc
        return response

    async def fetch_identity(self, user_id: str) -> Identity:
        """Look up a user's public profile for display in the review message."""

        data = (await self._request("GET", f"/users/{user_id}")).json()
        avatar = data.get("avatar")
        avatar_url = f"{self.avatar_cdn_url}/avatars/{user_id}/{avatar}.webp" if avatar else None
        return Identity(
            user_id=user_id,
            display_name=data.get("global_name") or data.get("username") or user_id,
            avatar_url=avatar_url,
        )

    async def post_embed(self, embed: dict[str, Any]) -> str:
        response = await self._request(
            "POST",
            f"/channels/{self.channel_id}/messages",
            json={"embeds": [embed]},
        )
        return str(response.json()["id"])

    async def add_reaction(self, message_id: str, emoji: str) -> None:
        await self._request(
            "PUT",
            f"/channels/{self.channel_id}/messages/{message_id}/reactions/{quote(emoji)}/@me",
        )

    async def list_reactors(self, message_id: str, emoji: str) -> list[dict[str, Any]]:
        response = await self._request(
            "GET",
            f"/channels/{self.channel_id}/messages/{message_id}/reactions/{quote(emoji)}",
            params={"limit": MAX_REACTORS_PER_PAGE},
        )
        return list(response.json())
