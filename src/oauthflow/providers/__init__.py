"""Provider presets."""

from __future__ import annotations

from oauthflow.providers.zoho import zoho_config

__all__ = ["zoho_config"]
