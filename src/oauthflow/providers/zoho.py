"""Zoho accounts preset.

Zoho serves tokens and user info from a per-region accounts domain. The
callback carries a ``location`` query parameter (``us``, ``eu``, ``in``, ...)
that is looked up in the ``serverinfo`` document to find that domain.
"""

from __future__ import annotations

from typing import Any

from oauthflow.claims import ClaimRule, ClaimTypes
from oauthflow.config.provider import ProviderConfig

SCHEME = "Zoho"
DISPLAY_NAME = "Zoho"

AUTHORIZATION_ENDPOINT = "https://accounts.zoho.com/oauth/v2/auth"
SERVER_INFO_ENDPOINT = "https://accounts.zoho.com/oauth/serverinfo"
TOKEN_PATH = "/oauth/v2/token"  # noqa: S105
USER_INFORMATION_PATH = "/oauth/user/info"
LOCATOR_PARAMETER = "location"
DEFAULT_SCOPES = ("AaaServer.profile.Read",)

CLAIM_RULES = (
    ClaimRule(claim_type=ClaimTypes.NAME_IDENTIFIER, path="ZUID", required=True),
    ClaimRule(claim_type=ClaimTypes.EMAIL, path="Email"),
    ClaimRule(claim_type=ClaimTypes.GIVEN_NAME, path="First_Name"),
    ClaimRule(claim_type=ClaimTypes.SURNAME, path="Last_Name"),
    ClaimRule(claim_type=ClaimTypes.NAME, path="Display_Name"),
)


def zoho_config(client_id: str, client_secret: str, **overrides: Any) -> ProviderConfig:
    """Build a ``ProviderConfig`` with Zoho's endpoints and claim rules."""
    values: dict[str, Any] = {
        "scheme": SCHEME,
        "client_id": client_id,
        "client_secret": client_secret,
        "authorization_endpoint": AUTHORIZATION_ENDPOINT,
        "discovery_endpoint": SERVER_INFO_ENDPOINT,
        "token_endpoint_template": TOKEN_PATH,
        "profile_endpoint_template": USER_INFORMATION_PATH,
        "locator_parameter": LOCATOR_PARAMETER,
        "scopes": DEFAULT_SCOPES,
        "claim_rules": CLAIM_RULES,
    }
    values.update(overrides)
    return ProviderConfig(**values)
