"""Application configuration via environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings

from oauthflow.claims import ClaimRule
from oauthflow.config.provider import ClientAuthMethod, ProviderConfig


class Settings(BaseSettings):
    """oauthflow configuration loaded from environment variables."""

    # Logging (CLI only; library code never configures structlog)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    log_format: Literal["console", "json"] = "console"

    # Backchannel HTTP
    http_timeout: float = 30.0
    http_user_agent: str = "oauthflow/0.1.0"
    attempt_timeout: float | None = None

    # Provider
    provider: str = "generic"  # generic, zoho
    scheme: str = "OAuth"
    client_id: str = ""
    client_secret: str = ""
    client_auth_method: ClientAuthMethod = ClientAuthMethod.CLIENT_SECRET_POST
    authorization_endpoint: str = ""
    token_endpoint_template: str = ""
    profile_endpoint_template: str = ""
    discovery_endpoint: str = ""
    locator_parameter: str = "location"
    scopes: list[str] = []
    claim_rules: list[ClaimRule] = []
    use_pkce: bool = False
    save_tokens: bool = False

    # Discovery cache (0 disables it)
    discovery_cache_ttl_seconds: int = 0

    model_config = {
        "env_prefix": "OAUTHFLOW_",
        "env_file": ".env",
        "extra": "ignore",
    }

    def provider_config(self) -> ProviderConfig:
        """Build the ``ProviderConfig`` described by these settings.

        For the ``zoho`` preset only explicitly set values override the
        preset's scheme, locator parameter, endpoints, scopes and claim rules.
        """
        if self.provider == "zoho":
            from oauthflow.providers.zoho import zoho_config

            overrides = self.model_dump(
                include={
                    "scheme",
                    "locator_parameter",
                    "authorization_endpoint",
                    "token_endpoint_template",
                    "profile_endpoint_template",
                    "discovery_endpoint",
                    "scopes",
                    "claim_rules",
                    "client_auth_method",
                    "use_pkce",
                    "save_tokens",
                },
                exclude_defaults=True,
            )
            return zoho_config(
                self.client_id,
                self.client_secret,
                request_timeout=self.http_timeout,
                **overrides,
            )
        if self.provider != "generic":
            raise ValueError(f"Unknown provider preset: {self.provider}")
        return ProviderConfig(
            scheme=self.scheme,
            client_id=self.client_id,
            client_secret=self.client_secret,
            client_auth_method=self.client_auth_method,
            authorization_endpoint=self.authorization_endpoint,
            token_endpoint_template=self.token_endpoint_template,
            profile_endpoint_template=self.profile_endpoint_template,
            discovery_endpoint=self.discovery_endpoint or None,
            locator_parameter=self.locator_parameter,
            scopes=tuple(self.scopes),
            claim_rules=tuple(self.claim_rules),
            use_pkce=self.use_pkce,
            save_tokens=self.save_tokens,
            request_timeout=self.http_timeout,
        )


settings = Settings()
