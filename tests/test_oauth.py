"""Tests for adept.calendar.oauth module."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import respx

from adept.calendar.oauth import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    REVOKE_URL,
    TOKEN_EXPIRY_KEY,
    TOKEN_URL,
    GoogleOAuthService,
    NotAuthenticatedError,
    OAuthToken,
)


@pytest.fixture
def oauth(settings_store, mock_env_vars):
    """OAuth service using test client credentials."""
    with patch("adept.core.config.load_dotenv"):
        yield GoogleOAuthService(settings_store, redirect_uri="http://localhost:8080")


async def store_tokens(settings_store, expires_in: timedelta) -> None:
    await settings_store.set(ACCESS_TOKEN_KEY, "old-access")
    await settings_store.set(REFRESH_TOKEN_KEY, "refresh-1")
    await settings_store.set(TOKEN_EXPIRY_KEY, (datetime.now(UTC) + expires_in).isoformat())


def form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class TestOAuthToken:
    """Tests for OAuthToken."""

    def test_expires_soon_inside_margin(self):
        token = OAuthToken("a", "r", datetime.now(UTC) + timedelta(minutes=4))
        assert token.expires_soon()

    def test_not_expiring(self):
        token = OAuthToken("a", "r", datetime.now(UTC) + timedelta(minutes=30))
        assert not token.expires_soon()

    def test_from_response_keeps_existing_refresh_token(self):
        token = OAuthToken.from_response({"access_token": "a", "expires_in": 60}, "r-old")
        assert token.refresh_token == "r-old"


class TestAuthenticationState:
    """Tests for is_authenticated and get_valid_token."""

    async def test_not_authenticated_without_tokens(self, oauth):
        assert await oauth.is_authenticated() is False

        with pytest.raises(NotAuthenticatedError):
            await oauth.get_valid_token()

    async def test_returns_stored_token_when_fresh(self, oauth, settings_store):
        await store_tokens(settings_store, timedelta(hours=1))

        assert await oauth.is_authenticated() is True
        assert await oauth.get_valid_token() == "old-access"

    @respx.mock
    async def test_refreshes_token_about_to_expire(self, oauth, settings_store):
        await store_tokens(settings_store, timedelta(minutes=2))
        route = respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(
                200, json={"access_token": "new-access", "expires_in": 3600}
            )
        )

        assert await oauth.get_valid_token() == "new-access"

        sent = form(route.calls.last.request)
        assert sent["grant_type"] == "refresh_token"
        assert sent["refresh_token"] == "refresh-1"
        assert sent["client_id"] == "test-client-id"
        assert await settings_store.get(ACCESS_TOKEN_KEY) == "new-access"
        assert await settings_store.get(REFRESH_TOKEN_KEY) == "refresh-1"

    @respx.mock
    async def test_malformed_expiry_forces_refresh(self, oauth, settings_store):
        await store_tokens(settings_store, timedelta(hours=1))
        await settings_store.set(TOKEN_EXPIRY_KEY, "soon-ish")
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "new-access"})
        )

        assert await oauth.get_valid_token() == "new-access"

    @respx.mock
    async def test_refresh_rejected(self, oauth, settings_store):
        await store_tokens(settings_store, timedelta(minutes=-1))
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(400, json={"error": "invalid_grant"})
        )

        with pytest.raises(httpx.HTTPStatusError):
            await oauth.get_valid_token()

    async def test_refresh_without_refresh_token(self, oauth):
        with pytest.raises(NotAuthenticatedError):
            await oauth.refresh_token()


class TestAuthorizationFlow:
    """Tests for authorization_url and exchange_code."""

    def test_authorization_url(self, oauth):
        url = oauth.authorization_url(state="xyz")

        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        assert parsed.netloc == "accounts.google.com"
        assert params["client_id"] == "test-client-id"
        assert params["scope"] == "https://www.googleapis.com/auth/calendar"
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert params["redirect_uri"] == "http://localhost:8080"
        assert params["state"] == "xyz"

    @respx.mock
    async def test_exchange_code_stores_tokens(self, oauth, settings_store):
        route = respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(
                200,
                json={"access_token": "acc", "refresh_token": "ref", "expires_in": 3599},
            )
        )

        token = await oauth.exchange_code("auth-code")

        assert token.access_token == "acc"
        sent = form(route.calls.last.request)
        assert sent["grant_type"] == "authorization_code"
        assert sent["code"] == "auth-code"
        assert await oauth.is_authenticated() is True
        assert await settings_store.get(ACCESS_TOKEN_KEY) == "acc"
        assert await settings_store.exists(TOKEN_EXPIRY_KEY)


class TestRevoke:
    """Tests for revoke."""

    @respx.mock
    async def test_revoke_clears_tokens(self, oauth, settings_store):
        await store_tokens(settings_store, timedelta(hours=1))
        route = respx.post(REVOKE_URL).mock(return_value=httpx.Response(200))

        await oauth.revoke()

        assert form(route.calls.last.request) == {"token": "refresh-1"}
        assert await oauth.is_authenticated() is False
        assert await settings_store.get(ACCESS_TOKEN_KEY) is None

    @respx.mock
    async def test_revoke_clears_tokens_when_google_unreachable(self, oauth, settings_store):
        await store_tokens(settings_store, timedelta(hours=1))
        respx.post(REVOKE_URL).mock(side_effect=httpx.ConnectError("offline"))

        await oauth.revoke()

        assert await oauth.is_authenticated() is False
