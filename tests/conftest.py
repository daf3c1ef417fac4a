"""Shared fixtures for oauthflow tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

from oauthflow.claims import ClaimRule, ClaimTypes
from oauthflow.config.provider import ProviderConfig

DISCOVERY_URL = "https://discovery.example.com/serverinfo"
AUTHORIZE_URL = "https://accounts.example.com/oauth/authorize"
REDIRECT_URI = "https://app.example.com/signin-oauth"


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def discovery_config() -> ProviderConfig:
    """Provider whose token/profile endpoints hang off a discovered domain."""
    return ProviderConfig(
        scheme="Example",
        client_id="client-123",
        client_secret="s3cret",
        authorization_endpoint=AUTHORIZE_URL,
        discovery_endpoint=DISCOVERY_URL,
        token_endpoint_template="/token",
        profile_endpoint_template="/profile",
        scopes=("profile", "email"),
        claim_rules=(
            ClaimRule(claim_type=ClaimTypes.NAME_IDENTIFIER, path="id"),
            ClaimRule(claim_type=ClaimTypes.EMAIL, path="email"),
        ),
    )


@pytest.fixture
def static_config() -> ProviderConfig:
    """Provider with fixed absolute endpoints and no discovery step."""
    return ProviderConfig(
        scheme="Static",
        client_id="client-abc",
        client_secret="static-secret",
        authorization_endpoint=AUTHORIZE_URL,
        token_endpoint_template="https://idp.example.com/oauth/token",
        profile_endpoint_template="https://idp.example.com/userinfo",
        claim_rules=(ClaimRule(claim_type=ClaimTypes.NAME_IDENTIFIER, path="sub"),),
    )
