"""Authorization-code grant against the provider's token endpoint."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from oauthflow.config.provider import ClientAuthMethod, ProviderConfig
from oauthflow.exceptions import ParseError, TokenError
from oauthflow.http import HttpExchanger

logger = structlog.get_logger()


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = ""
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None
    id_token: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: object, *, url: str = "") -> TokenResponse:
        """Validate a token endpoint payload.

        Raises:
            TokenError: The payload carries an OAuth ``error`` member, or
                has no access token.
            ParseError: The payload is not a JSON object.
        """
        if not isinstance(payload, Mapping):
            raise ParseError("Token response is not a JSON object", body=str(payload), url=url)
        if payload.get("error"):
            raise TokenError(
                str(payload["error"]),
                description=payload.get("error_description"),
                uri=payload.get("error_uri"),
            )
        if not payload.get("access_token"):
            raise TokenError(
                "missing_access_token", description="No access_token in token response"
            )
        try:
            return cls.model_validate({**payload, "raw": dict(payload)})
        except ValidationError as exc:
            raise ParseError(
                f"Malformed token response: {exc}", body=str(payload), url=url
            ) from exc

    def expires_at(self, issued_at: datetime | None = None) -> datetime | None:
        if self.expires_in is None:
            return None
        return (issued_at or datetime.now(UTC)) + timedelta(seconds=self.expires_in)

    def as_properties(self, issued_at: datetime | None = None) -> dict[str, str]:
        """Flatten the tokens into string properties for the auth ticket."""
        tokens = {"access_token": self.access_token}
        if self.token_type:
            tokens["token_type"] = self.token_type
        if self.refresh_token:
            tokens["refresh_token"] = self.refresh_token
        if self.id_token:
            tokens["id_token"] = self.id_token
        expires_at = self.expires_at(issued_at)
        if expires_at is not None:
            tokens["expires_at"] = expires_at.isoformat()
        return tokens


class TokenExchangeClient:
    """Exchanges an authorization code for tokens.

    There are no retries here; a failed exchange ends the attempt.
    """

    def __init__(self, http: HttpExchanger, config: ProviderConfig) -> None:
        self._http = http
        self._config = config

    async def exchange(
        self,
        code: str,
        redirect_uri: str,
        *,
        code_verifier: str | None = None,
    ) -> TokenResponse:
        config = self._config
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier

        auth: httpx.Auth | None = None
        if config.client_auth_method is ClientAuthMethod.CLIENT_SECRET_BASIC:
            auth = httpx.BasicAuth(config.client_id, config.client_secret)
        else:
            form["client_id"] = config.client_id
            form["client_secret"] = config.client_secret

        url = config.token_endpoint
        payload = await self._http.send(
            "POST",
            url,
            data=form,
            auth=auth,
            operation="access token",
            timeout=config.request_timeout,
        )
        tokens = TokenResponse.from_payload(payload, url=url)
        logger.info(
            "token_exchange.completed",
            token_endpoint=url,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            has_refresh_token=tokens.refresh_token is not None,
        )
        return tokens
