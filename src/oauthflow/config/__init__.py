"""Configuration: environment settings and provider descriptions."""

from __future__ import annotations

from oauthflow.config.provider import ClientAuthMethod, ProviderConfig
from oauthflow.config.settings import Settings, settings

__all__ = ["ClientAuthMethod", "ProviderConfig", "Settings", "settings"]
