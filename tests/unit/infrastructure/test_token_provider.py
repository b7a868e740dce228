"""Unit tests for the supplier access token lifecycle."""

from urllib.parse import parse_qs

import httpx
import pytest

from dropship_service.exceptions import ConfigurationError, UpstreamAuthError
from dropship_service.infrastructure.supplier.auth import (
    EXPIRY_BUFFER_SECONDS,
    TokenProvider,
    normalize_token_response,
)

TOKEN_PATH = "/authentication/getAccessToken"
NOW_MS = 1_767_225_600_000  # 2026-01-01T00:00:00Z


class TestTokenCaching:
    """A valid cached token is reused; an expired one triggers a new grant."""

    @pytest.mark.asyncio
    async def test_second_call_within_validity_uses_cache(self, token_provider, fake_supplier) -> None:
        first = await token_provider.get_access_token()
        second = await token_provider.get_access_token()

        assert first == second
        assert first.value == "token-1"
        assert len(fake_supplier.calls(TOKEN_PATH)) == 1

    @pytest.mark.asyncio
    async def test_new_grant_after_expiry(self, token_provider, fake_supplier, clock) -> None:
        fake_supplier.on(
            TOKEN_PATH,
            (200, {"access_token": "token-1", "expires_in": 3600}),
            (200, {"access_token": "token-2", "expires_in": 3600}),
        )
        first = await token_provider.get_access_token()

        clock.advance(3600 - EXPIRY_BUFFER_SECONDS - 1)
        assert (await token_provider.get_access_token()).value == "token-1"

        clock.advance(1)
        second = await token_provider.get_access_token()

        assert second.value == "token-2"
        assert second.expires_at_epoch_ms > first.expires_at_epoch_ms
        assert len(fake_supplier.calls(TOKEN_PATH)) == 2

    @pytest.mark.asyncio
    async def test_clear_cache_forces_new_grant(self, token_provider, fake_supplier) -> None:
        await token_provider.get_access_token()
        token_provider.clear_cache()
        await token_provider.get_access_token()

        assert len(fake_supplier.calls(TOKEN_PATH)) == 2

    @pytest.mark.asyncio
    async def test_returned_token_is_always_valid(self, token_provider, clock) -> None:
        token = await token_provider.get_access_token()
        assert token.is_valid(clock())


class TestGrantRequest:
    """The client-credentials grant is form encoded and carries both key forms."""

    @pytest.mark.asyncio
    async def test_combined_key_is_split_into_id_and_secret(self, token_provider, fake_supplier) -> None:
        await token_provider.get_access_token()

        request = fake_supplier.calls(TOKEN_PATH)[0]
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}

        assert request.method == "POST"
        assert request.headers["content-type"].startswith("application/x-www-form-urlencoded")
        assert form == {
            "grant_type": "client_credentials",
            "apiKey": "CJ0001@api@secret",
            "client_id": "CJ0001",
            "client_secret": "secret",
        }

    @pytest.mark.asyncio
    async def test_id_and_secret_are_combined_into_key(
        self, http_client, fake_supplier, clock, test_settings
    ) -> None:
        provider = TokenProvider(
            http_client,
            test_settings.cj_token_url,
            client_id="CJ0002",
            client_secret="s3cret",
            clock=clock,
        )
        await provider.get_access_token()

        form = parse_qs(fake_supplier.calls(TOKEN_PATH)[0].content.decode())
        assert form["apiKey"] == ["CJ0002@api@s3cret"]

    @pytest.mark.asyncio
    async def test_missing_credentials_raise_before_any_request(
        self, http_client, fake_supplier, clock, test_settings
    ) -> None:
        provider = TokenProvider(http_client, test_settings.cj_token_url, clock=clock)

        with pytest.raises(ConfigurationError):
            await provider.get_access_token()
        assert fake_supplier.requests == []


class TestGrantFailures:
    @pytest.mark.asyncio
    async def test_rejected_envelope(self, token_provider, fake_supplier) -> None:
        fake_supplier.on(
            TOKEN_PATH,
            (200, {"code": 1600001, "result": False, "message": "Invalid API key", "data": None}),
        )

        with pytest.raises(UpstreamAuthError, match="Invalid API key"):
            await token_provider.get_access_token()

    @pytest.mark.asyncio
    async def test_http_error_status(self, token_provider, fake_supplier) -> None:
        fake_supplier.on(TOKEN_PATH, (503, {"message": "maintenance"}))

        with pytest.raises(UpstreamAuthError) as exc_info:
            await token_provider.get_access_token()
        assert exc_info.value.http_status == 503

    @pytest.mark.asyncio
    async def test_transport_error(self, token_provider, fake_supplier) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fake_supplier.on(TOKEN_PATH, boom)

        with pytest.raises(UpstreamAuthError, match="Token request failed"):
            await token_provider.get_access_token()

    @pytest.mark.asyncio
    async def test_failed_grant_leaves_cache_empty(self, token_provider, fake_supplier) -> None:
        fake_supplier.on(
            TOKEN_PATH,
            (500, {"message": "oops"}),
            (200, {"access_token": "token-ok", "expires_in": 3600}),
        )

        with pytest.raises(UpstreamAuthError):
            await token_provider.get_access_token()
        assert (await token_provider.get_access_token()).value == "token-ok"


class TestNormalizeTokenResponse:
    """Flat and enveloped token responses reduce to the same shape."""

    def test_flat_response(self) -> None:
        token = normalize_token_response({"access_token": "abc", "expires_in": 7200}, NOW_MS)
        assert token.value == "abc"
        assert token.expires_at_epoch_ms == NOW_MS + (7200 - EXPIRY_BUFFER_SECONDS) * 1000

    def test_expires_in_defaults_to_one_hour(self) -> None:
        token = normalize_token_response({"access_token": "abc"}, NOW_MS)
        assert token.expires_at_epoch_ms == NOW_MS + (3600 - EXPIRY_BUFFER_SECONDS) * 1000

    def test_enveloped_response_with_expiry_date(self) -> None:
        payload = {
            "code": 200,
            "result": True,
            "message": "Success",
            "data": {
                "accessToken": "nested",
                "accessTokenExpiryDate": "2026-01-02T08:00:00+08:00",
            },
        }
        token = normalize_token_response(payload, NOW_MS)

        assert token.value == "nested"
        assert token.expires_at_epoch_ms == NOW_MS + (86400 - EXPIRY_BUFFER_SECONDS) * 1000

    def test_expiry_date_wins_over_expires_in(self) -> None:
        payload = {
            "code": 200,
            "result": True,
            "data": {
                "accessToken": "nested",
                "expires_in": 60,
                "accessTokenExpiryDate": "2026-01-02T00:00:00+00:00",
            },
        }
        token = normalize_token_response(payload, NOW_MS)
        assert token.expires_at_epoch_ms == NOW_MS + (86400 - EXPIRY_BUFFER_SECONDS) * 1000

    @pytest.mark.parametrize(
        "payload",
        [
            {"code": 200, "result": True, "data": {}},
            {"expires_in": 3600},
            {"access_token": "abc", "expires_in": "soon"},
            {"code": 200, "result": True, "data": {"accessToken": "x", "accessTokenExpiryDate": "tomorrow"}},
            ["not", "an", "object"],
        ],
    )
    def test_malformed_responses_raise(self, payload) -> None:
        with pytest.raises(UpstreamAuthError):
            normalize_token_response(payload, NOW_MS)
