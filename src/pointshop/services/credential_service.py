"""Identity exchange with the OAuth provider and session credential handling."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

import httpx
import jwt

from ..core.errors import AuthError, AuthFailure, ProviderUnavailableError
from ..schemas import Identity
from ..utils.datetime import utc_now

logger = logging.getLogger(__name__)


class IdentityProviderClient:
    """Authorization-code exchange and profile lookup against the identity provider."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        token_url: str,
        profile_url: str,
        avatar_cdn_url: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.token_url = token_url
        self.profile_url = profile_url
        self.avatar_cdn_url = avatar_cdn_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def exchange_code(self, code: str, redirect_uri: Optional[str] = None) -> Identity:
        """Trade a one-time authorization code for the caller's identity."""

        if not code:
            raise AuthError(AuthFailure.INVALID_CODE, "Missing authorization code")

        try:
            token_response = await self._http.post(
                self.token_url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri or self.redirect_uri,
                },
                auth=(self.client_id, self.client_secret),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(f"Token exchange failed: {exc}") from exc

        if token_response.status_code >= 500:
            raise ProviderUnavailableError(f"Token endpoint returned {token_response.status_code}")

        token_data = _json_or_empty(token_response)
        access_token = token_data.get("access_token")
        if token_response.status_code >= 400 or token_data.get("error") or not access_token:
            logger.info("authorization code rejected by provider: %s", token_data.get("error", token_response.status_code))
            raise AuthError(AuthFailure.INVALID_CODE, "Authorization code was rejected")

        try:
            profile_response = await self._http.get(
                self.profile_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            profile_response.raise_for_status()
            profile = profile_response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderUnavailableError(f"Profile lookup failed: {exc}") from exc

        if not profile.get("id"):
            raise ProviderUnavailableError("Profile response did not include a user id")

        return self.identity_from_profile(profile)

    def identity_from_profile(self, profile: dict[str, Any]) -> Identity:
        user_id = str(profile["id"])
        display_name = profile.get("global_name") or profile.get("username") or user_id
        return Identity(user_id=user_id, display_name=display_name, avatar_url=self.avatar_url(profile))

    def avatar_url(self, profile: dict[str, Any]) -> str:
        user_id = str(profile["id"])
        avatar = profile.get("avatar")
        if avatar:
            return f"{self.avatar_cdn_url}/avatars/{user_id}/{avatar}.webp"

        discriminator = str(profile.get("discriminator") or "0")
        if discriminator != "0" and discriminator.isdigit():
            index = int(discriminator) % 5
        elif user_id.isdigit():
            index = (int(user_id) >> 22) % 6
        else:
            index = 0
        return f"{self.avatar_cdn_url}/embed/avatars/{index}.png"


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def issue_session(
    identity: Identity,
    *,
    signing_key: str,
    algorithm: str = "HS256",
    ttl_seconds: Optional[int] = None,
) -> str:
    """Mint a signed session credential carrying only the stable user id."""

    claims: dict[str, Any] = {"sub": identity.user_id}
    if ttl_seconds:
        issued_at = utc_now()
        claims["iat"] = issued_at
        claims["exp"] = issued_at + timedelta(seconds=ttl_seconds)
    return jwt.encode(claims, signing_key, algorithm=algorithm)


def verify_session(credential: Optional[str], *, signing_key: str, algorithm: str = "HS256") -> str:
    """Verify a session credential and return the user id it was issued for."""

    if not credential:
        raise AuthError(AuthFailure.MISSING_TOKEN, "Missing session credential")

    try:
        claims = jwt.decode(
            credential,
            signing_key,
            algorithms=[algorithm],
            options={"require": ["sub"]},
        )
    except jwt.InvalidTokenError as exc:
        raise AuthError(AuthFailure.INVALID_TOKEN, "Invalid session credential") from exc

    user_id = claims.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise AuthError(AuthFailure.INVALID_TOKEN, "Invalid session credential")
    return user_id
