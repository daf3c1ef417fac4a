"""Provider configuration shared by every authentication attempt."""

from __future__ import annotations

from enum import StrEnum
from typing import Self

import httpx
from pydantic import BaseModel, ConfigDict, Field, model_validator

from oauthflow.claims import ClaimRule

DOMAIN_PLACEHOLDER = "{domain}"


class ClientAuthMethod(StrEnum):
    CLIENT_SECRET_POST = "client_secret_post"  # noqa: S105
    CLIENT_SECRET_BASIC = "client_secret_basic"  # noqa: S105


class ProviderConfig(BaseModel):
    """Static description of one OAuth2 provider.

    Instances are frozen. Endpoint discovery never edits a shared config;
    it produces a per-attempt copy through ``with_domain``.

    When ``discovery_endpoint`` is set, the endpoint templates are joined
    onto the discovered domain: either a relative path (``/oauth/v2/token``)
    or a URL containing ``{domain}``. Without discovery they must already be
    absolute URLs.
    """

    model_config = ConfigDict(frozen=True)

    scheme: str = "OAuth"
    client_id: str
    client_secret: str = ""
    client_auth_method: ClientAuthMethod = ClientAuthMethod.CLIENT_SECRET_POST

    authorization_endpoint: str = ""
    token_endpoint_template: str
    profile_endpoint_template: str
    discovery_endpoint: str | None = None
    locator_parameter: str = "location"

    scopes: tuple[str, ...] = ()
    authorization_parameters: dict[str, str] = Field(default_factory=dict)
    claim_rules: tuple[ClaimRule, ...] = ()
    claims_issuer: str | None = None

    use_pkce: bool = False
    save_tokens: bool = False
    request_timeout: float | None = None

    # Filled in on the per-attempt copy once discovery has run
    resolved_domain: str | None = None

    @model_validator(mode="after")
    def _check_static_endpoints(self) -> Self:
        if self.discovery_endpoint or self.resolved_domain:
            return self
        for field_name in ("token_endpoint_template", "profile_endpoint_template"):
            value = getattr(self, field_name)
            if not is_absolute_http_url(value):
                raise ValueError(
                    f"{field_name} must be an absolute URL when no discovery endpoint is configured"
                )
        return self

    @property
    def discovery_enabled(self) -> bool:
        return bool(self.discovery_endpoint)

    @property
    def issuer(self) -> str:
        return self.claims_issuer or self.scheme

    @property
    def token_endpoint(self) -> str:
        return self._expand(self.token_endpoint_template)

    @property
    def profile_endpoint(self) -> str:
        return self._expand(self.profile_endpoint_template)

    def with_domain(self, domain: str) -> ProviderConfig:
        """Return a copy whose endpoints are rooted at ``domain``."""
        return self.model_copy(update={"resolved_domain": domain})

    def _expand(self, template: str) -> str:
        if self.resolved_domain is None:
            return template
        return join_domain(self.resolved_domain, template)


def join_domain(domain: str, template: str) -> str:
    """Root an endpoint template at a discovered domain."""
    base = domain.rstrip("/")
    if DOMAIN_PLACEHOLDER in template:
        return template.replace(DOMAIN_PLACEHOLDER, base)
    if is_absolute_http_url(template):
        return template
    return f"{base}/{template.lstrip('/')}"


def is_absolute_http_url(value: str) -> bool:
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)
