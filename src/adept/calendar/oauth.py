"""Google OAuth 2.0 credentials for the Calendar API.

Tokens live in the settings store so they survive restarts. The browser
consent step is driven elsewhere: callers send the user to
``authorization_url()`` and hand the returned code to ``exchange_code()``.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx
from dateutil import parser as dateparser

from adept.core.config import get_google_oauth_credentials, get_settings
from adept.data.settings_store import SettingsStore

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"

ACCESS_TOKEN_KEY = "google_access_token"
REFRESH_TOKEN_KEY = "google_refresh_token"
TOKEN_EXPIRY_KEY = "google_token_expiry"

# Refresh this long before the access token actually expires
REFRESH_MARGIN = timedelta(minutes=5)
DEFAULT_EXPIRES_IN = 3600


class NotAuthenticatedError(RuntimeError):
    """No usable Google credentials are stored."""


@dataclass
class OAuthToken:
    """Access token with its refresh token and expiry."""

    access_token: str
    refresh_token: str | None
    expires_at: datetime

    def expires_soon(self, now: datetime | None = None) -> bool:
        """True if the access token expires within the refresh margin."""
        now = now or datetime.now(UTC)
        return self.expires_at <= now + REFRESH_MARGIN

    @classmethod
    def from_response(cls, data: dict, refresh_token: str | None = None) -> "OAuthToken":
        """Build from a token endpoint response.

        Google omits ``refresh_token`` on refresh grants, so the caller's
        existing one is kept.
        """
        expires_in = data.get("expires_in") or DEFAULT_EXPIRES_IN
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or refresh_token,
            expires_at=datetime.now(UTC) + timedelta(seconds=int(expires_in)),
        )


class GoogleOAuthService:
    """Stores, refreshes and revokes Google OAuth tokens."""

    def __init__(
        self,
        settings_store: SettingsStore,
        http_client: httpx.AsyncClient | None = None,
        redirect_uri: str | None = None,
    ) -> None:
        self.settings_store = settings_store
        self._http = http_client
        self.redirect_uri = redirect_uri or get_settings().oauth_redirect_uri

    async def _post(self, url: str, data: dict) -> httpx.Response:
        if self._http is not None:
            return await self._http.post(url, data=data)
        async with httpx.AsyncClient(timeout=30.0) as http:
            return await http.post(url, data=data)

    async def is_authenticated(self) -> bool:
        """True when a refresh token is stored."""
        return bool(await self.settings_store.get(REFRESH_TOKEN_KEY))

    async def load_token(self) -> OAuthToken | None:
        """Read the stored token, or None if there is no access token."""
        access_token = await self.settings_store.get(ACCESS_TOKEN_KEY)
        if not access_token:
            return None

        refresh_token = await self.settings_store.get(REFRESH_TOKEN_KEY)
        expiry = await self.settings_store.get(TOKEN_EXPIRY_KEY)
        try:
            expires_at = dateparser.isoparse(expiry) if expiry else None
        except ValueError:
            logger.warning("Stored token expiry is malformed: %r", expiry)
            expires_at = None
        if expires_at is None:
            # Unknown expiry: treat as expired so it gets refreshed
            expires_at = datetime.now(UTC)
        elif expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)

        return OAuthToken(access_token, refresh_token, expires_at)

    async def save_token(self, token: OAuthToken) -> None:
        """Persist a token to the settings store."""
        await self.settings_store.set(ACCESS_TOKEN_KEY, token.access_token)
        if token.refresh_token:
            await self.settings_store.set(REFRESH_TOKEN_KEY, token.refresh_token)
        await self.settings_store.set(TOKEN_EXPIRY_KEY, token.expires_at.isoformat())

    async def clear_tokens(self) -> None:
        """Remove every stored token."""
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, TOKEN_EXPIRY_KEY):
            await self.settings_store.delete(key)

    async def get_valid_token(self) -> str:
        """Get an access token, refreshing it first if it is about to expire.

        Raises:
            NotAuthenticatedError: If no tokens are stored
            httpx.HTTPStatusError: If the refresh request fails
        """
        token = await self.load_token()
        if token is None:
            if await self.is_authenticated():
                return await self.refresh_token()
            raise NotAuthenticatedError("Not authenticated with Google Calendar")

        if token.expires_soon():
            logger.debug("Access token expires at %s, refreshing", token.expires_at)
            return await self.refresh_token()

        return token.access_token

    async def refresh_token(self) -> str:
        """Exchange the stored refresh token for a new access token.

        Returns:
            The new access token

        Raises:
            NotAuthenticatedError: If no refresh token is stored
            httpx.HTTPStatusError: If Google rejects the refresh
        """
        refresh_token = await self.settings_store.get(REFRESH_TOKEN_KEY)
        if not refresh_token:
            raise NotAuthenticatedError("No refresh token stored")

        client_id, client_secret = get_google_oauth_credentials()
        response = await self._post(
            TOKEN_URL,
            {
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if response.status_code != 200:
            logger.error("Token refresh failed: %s %s", response.status_code, response.text)
        response.raise_for_status()

        token = OAuthToken.from_response(response.json(), refresh_token=refresh_token)
        await self.save_token(token)
        logger.info("Refreshed Google access token (expires %s)", token.expires_at)
        return token.access_token

    def authorization_url(self, state: str | None = None) -> str:
        """Build the consent URL for offline Calendar access."""
        client_id, _ = get_google_oauth_credentials()
        params = {
            "client_id": client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": CALENDAR_SCOPE,
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthToken:
        """Exchange an authorization code for tokens and store them.

        Raises:
            httpx.HTTPStatusError: If the exchange fails
        """
        client_id, client_secret = get_google_oauth_credentials()
        response = await self._post(
            TOKEN_URL,
            {
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        if response.status_code != 200:
            logger.error("Code exchange failed: %s %s", response.status_code, response.text)
        response.raise_for_status()

        token = OAuthToken.from_response(response.json())
        await self.save_token(token)
        logger.info("Stored Google Calendar credentials")
        return token

    async def revoke(self) -> None:
        """Revoke the stored token with Google and forget it locally.

        Local tokens are cleared even if Google rejects the revocation.
        """
        token = await self.settings_store.get(REFRESH_TOKEN_KEY) or await self.settings_store.get(
            ACCESS_TOKEN_KEY
        )
        try:
            if token:
                response = await self._post(REVOKE_URL, {"token": token})
                if response.status_code != 200:
                    logger.warning("Token revocation returned %s", response.status_code)
        except httpx.HTTPError as e:
            logger.warning("Token revocation failed: %s", e)
        finally:
            await self.clear_tokens()
        logger.info("Signed out of Google Calendar")
