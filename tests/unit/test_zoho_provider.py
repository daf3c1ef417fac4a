"""Tests for the Zoho accounts preset."""

from __future__ import annotations

import httpx
import pytest
import respx

from oauthflow.claims import ClaimTypes
from oauthflow.exceptions import ClaimMappingError, TokenError
from oauthflow.flow import CallbackRequest, OAuthFlow
from oauthflow.providers import zoho
from oauthflow.providers.zoho import zoho_config

EU_DOMAIN = "https://accounts.zoho.eu"
REDIRECT_URI = "https://app.example.com/signin-zoho"

SERVER_INFO = {
    "result": "success",
    "locations": {
        "us": "https://accounts.zoho.com",
        "eu": EU_DOMAIN,
        "in": "https://accounts.zoho.in",
    },
}

USER_INFO = {
    "ZUID": 700001234,
    "Email": "jane@example.com",
    "First_Name": "Jane",
    "Last_Name": "Doe",
    "Display_Name": "jane.doe",
}


def _callback(query: dict[str, str]) -> CallbackRequest:
    return CallbackRequest.from_query(query, redirect_uri=REDIRECT_URI)


class TestZohoConfig:
    def test_defaults(self) -> None:
        config = zoho_config("cid", "secret")
        assert config.scheme == "Zoho"
        assert config.discovery_endpoint == "https://accounts.zoho.com/oauth/serverinfo"
        assert config.authorization_endpoint == "https://accounts.zoho.com/oauth/v2/auth"
        assert config.token_endpoint_template == "/oauth/v2/token"
        assert config.profile_endpoint_template == "/oauth/user/info"
        assert config.locator_parameter == "location"
        assert config.scopes == ("AaaServer.profile.Read",)
        assert [r.path for r in config.claim_rules] == [
            "ZUID",
            "Email",
            "First_Name",
            "Last_Name",
            "Display_Name",
        ]

    def test_overrides(self) -> None:
        config = zoho_config("cid", "secret", scopes=("ZohoCRM.users.READ",), save_tokens=True)
        assert config.scopes == ("ZohoCRM.users.READ",)
        assert config.save_tokens

    def test_regional_endpoints(self) -> None:
        config = zoho_config("cid", "secret").with_domain(EU_DOMAIN)
        assert config.token_endpoint == "https://accounts.zoho.eu/oauth/v2/token"
        assert config.profile_endpoint == "https://accounts.zoho.eu/oauth/user/info"


class TestZohoFlow:
    @pytest.mark.asyncio
    @respx.mock
    async def test_eu_sign_in(self) -> None:
        respx.get(zoho.SERVER_INFO_ENDPOINT).mock(
            return_value=httpx.Response(200, json=SERVER_INFO)
        )
        token = respx.post(f"{EU_DOMAIN}{zoho.TOKEN_PATH}").mock(
            return_value=httpx.Response(
                200,
                json={
                    "access_token": "1000.abc",
                    "token_type": "Bearer",
                    "expires_in": 3600,
                    "api_domain": "https://www.zohoapis.eu",
                },
            )
        )
        respx.get(f"{EU_DOMAIN}{zoho.USER_INFORMATION_PATH}").mock(
            return_value=httpx.Response(200, json=USER_INFO)
        )

        async with OAuthFlow(zoho_config("cid", "secret")) as flow:
            ticket = await flow.authenticate(
                _callback({"code": "1000.code", "state": "st", "location": "eu"})
            )

        assert token.called
        assert ticket.scheme == "Zoho"
        assert ticket.claims.pairs() == [
            (ClaimTypes.NAME_IDENTIFIER, "700001234"),
            (ClaimTypes.EMAIL, "jane@example.com"),
            (ClaimTypes.GIVEN_NAME, "Jane"),
            (ClaimTypes.SURNAME, "Doe"),
            (ClaimTypes.NAME, "jane.doe"),
        ]
        assert ticket.claims.name == "jane.doe"
        assert all(c.issuer == "Zoho" for c in ticket.claims.claims)

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_code_reported_with_success_status(self) -> None:
        respx.get(zoho.SERVER_INFO_ENDPOINT).mock(
            return_value=httpx.Response(200, json=SERVER_INFO)
        )
        respx.post(f"{EU_DOMAIN}{zoho.TOKEN_PATH}").mock(
            return_value=httpx.Response(200, json={"error": "invalid_code"})
        )

        async with OAuthFlow(zoho_config("cid", "secret")) as flow:
            with pytest.raises(TokenError) as exc_info:
                await flow.authenticate(_callback({"code": "stale", "location": "eu"}))
        assert exc_info.value.error == "invalid_code"

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_zuid_fails(self) -> None:
        respx.get(zoho.SERVER_INFO_ENDPOINT).mock(
            return_value=httpx.Response(200, json=SERVER_INFO)
        )
        respx.post(f"{EU_DOMAIN}{zoho.TOKEN_PATH}").mock(
            return_value=httpx.Response(200, json={"access_token": "1000.abc"})
        )
        respx.get(f"{EU_DOMAIN}{zoho.USER_INFORMATION_PATH}").mock(
            return_value=httpx.Response(200, json={"Email": "jane@example.com"})
        )

        async with OAuthFlow(zoho_config("cid", "secret")) as flow:
            with pytest.raises(ClaimMappingError) as exc_info:
                await flow.authenticate(_callback({"code": "c", "location": "eu"}))
        assert exc_info.value.path == "ZUID"
