"""Discord OAuth2 client.

Performs the two legs of the authorization-code flow against Discord's HTTP
API: code -> access token, then access token -> user object. Each leg is a
single request with no retries; any failure ends the login attempt and the
user restarts from the authorize redirect.
"""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx

from walletgate.config import DiscordOAuthConfig
from walletgate.errors import ProviderExchangeFailed, ProviderIdentityMissing
from walletgate.logging_config import get_logger
from walletgate.models import Identity

logger = get_logger(__name__)

# Discord reports "0" for accounts migrated off the legacy name#1234 scheme
NO_DISCRIMINATOR = "0"


@dataclass(frozen=True)
class TokenResponse:
    """Access token returned by the token endpoint."""

    access_token: str = field(repr=False)
    token_type: str = "Bearer"
    scope: str = ""
    expires_in: int | None = None


def display_name_for(user: dict[str, Any]) -> str:
    """Human-readable name for a Discord user object.

    Legacy accounts keep their ``#discriminator`` suffix so that names stay
    unambiguous; migrated accounts use the bare username.
    """
    username = user.get("username") or user.get("global_name") or str(user["id"])
    discriminator = user.get("discriminator")
    if discriminator and discriminator != NO_DISCRIMINATOR:
        return f"{username}#{discriminator}"
    return username


class DiscordOAuthClient:
    """OAuth2 authorization-code client for Discord."""

    def __init__(self, config: DiscordOAuthConfig) -> None:
        self._config = config

    @property
    def redirect_uri(self) -> str:
        return self._config.redirect_uri

    def authorization_url(self, state: str) -> str:
        """Build the URL the browser is redirected to for consent."""
        params = {
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_uri,
            "response_type": "code",
            "scope": self._config.scope,
            "state": state,
        }
        if self._config.prompt:
            params["prompt"] = self._config.prompt
        return f"{self._config.authorize_url}?{urlencode(params)}"

    async def exchange_code_for_token(self, code: str) -> TokenResponse:
        """Exchange an authorization code for an access token."""
        token_data = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            # Must match the value sent in authorization_url() byte for byte
            "redirect_uri": self._config.redirect_uri,
        }

        try:
            async with httpx.AsyncClient(timeout=self._config.request_timeout_seconds) as client:
                resp = await client.post(
                    self._config.token_url,
                    data=token_data,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.warning("Token exchange request failed", error=str(e))
            raise ProviderExchangeFailed(f"token request failed: {e}") from e

        if not resp.is_success:
            logger.warning(
                "Token exchange rejected",
                status_code=resp.status_code,
                provider_error=_provider_error(resp),
            )
            raise ProviderExchangeFailed(f"token endpoint returned {resp.status_code}")

        body = _json_object(resp)
        access_token = body.get("access_token") if body else None
        if not access_token:
            raise ProviderExchangeFailed("token response has no access_token")

        expires_in = body.get("expires_in")
        return TokenResponse(
            access_token=access_token,
            token_type=body.get("token_type") or "Bearer",
            scope=body.get("scope", ""),
            expires_in=int(expires_in) if isinstance(expires_in, int | float) else None,
        )

    async def fetch_identity(self, token: TokenResponse) -> Identity:
        """Look up the user the access token belongs to."""
        try:
            async with httpx.AsyncClient(timeout=self._config.request_timeout_seconds) as client:
                resp = await client.get(
                    self._config.user_url,
                    headers={"Authorization": f"{token.token_type} {token.access_token}"},
                )
        except httpx.HTTPError as e:
            logger.warning("User lookup request failed", error=str(e))
            raise ProviderExchangeFailed(f"user request failed: {e}") from e

        if not resp.is_success:
            logger.warning("User lookup rejected", status_code=resp.status_code)
            raise ProviderExchangeFailed(f"user endpoint returned {resp.status_code}")

        user = _json_object(resp)
        if user is None:
            raise ProviderExchangeFailed("user endpoint returned a non-JSON body")

        user_id = user.get("id")
        if user_id is None or str(user_id).strip() == "":
            raise ProviderIdentityMissing("user object has no id")

        identity = Identity(provider_id=str(user_id), display_name=display_name_for(user))
        logger.info("Discord identity resolved", provider_id=identity.provider_id)
        return identity


def _json_object(resp: httpx.Response) -> dict[str, Any] | None:
    """Decode a JSON object body, or None if the body is not one."""
    try:
        body = resp.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _provider_error(resp: httpx.Response) -> str | None:
    body = _json_object(resp)
    if body is None:
        return None
    return body.get("error")
