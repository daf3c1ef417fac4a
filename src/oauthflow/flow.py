"""Authentication flow orchestration.

``OAuthFlow`` owns the long-lived pieces (provider config, backchannel
client, claims mapper, optional discovery cache). Every inbound callback gets
its own ``AuthenticationAttempt``, which walks::

    start -> [resolving] -> exchanging -> fetching_profile -> mapping -> completed

and drops to ``failed`` on the first error. Attempts never write to the
shared ``ProviderConfig``; discovery produces a copy scoped to the attempt.
"""

from __future__ import annotations

import asyncio
import urllib.parse
import uuid
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog
from pydantic import BaseModel, Field

from oauthflow.claims import ClaimsHook, ClaimsMapper, ClaimSet
from oauthflow.config.provider import ProviderConfig
from oauthflow.config.settings import Settings
from oauthflow.discovery import DiscoveryCache, EndpointResolver, ResolvedEndpoints
from oauthflow.exceptions import (
    CallbackError,
    DeadlineExceededError,
    MissingLocatorError,
    OAuthFlowError,
    ParseError,
)
from oauthflow.http import HttpExchanger
from oauthflow.pkce import code_challenge_s256
from oauthflow.tokens import TokenExchangeClient, TokenResponse

logger = structlog.get_logger()


# --- Enums ---


class FlowState(StrEnum):
    START = "start"
    RESOLVING = "resolving"
    EXCHANGING = "exchanging"
    FETCHING_PROFILE = "fetching_profile"
    MAPPING = "mapping"
    COMPLETED = "completed"
    FAILED = "failed"


# --- Models ---


class CallbackRequest(BaseModel):
    """The parts of the authorization callback this flow consumes.

    ``state`` is validated by the host before the flow runs; it is carried
    here only for logging.
    """

    redirect_uri: str
    code: str | None = None
    state: str | None = None
    locator: str | None = None
    error: str | None = None
    error_description: str | None = None
    code_verifier: str | None = None

    @classmethod
    def from_query(
        cls,
        query: Mapping[str, str],
        *,
        redirect_uri: str,
        locator_parameter: str = "location",
        code_verifier: str | None = None,
    ) -> CallbackRequest:
        return cls(
            redirect_uri=redirect_uri,
            code=query.get("code") or None,
            state=query.get("state") or None,
            locator=query.get(locator_parameter) or None,
            error=query.get("error") or None,
            error_description=query.get("error_description") or None,
            code_verifier=code_verifier,
        )


class AuthProperties(BaseModel):
    return_url: str | None = None
    issued_at: datetime | None = None
    expires_at: datetime | None = None
    items: dict[str, str] = Field(default_factory=dict)
    tokens: dict[str, str] = Field(default_factory=dict, repr=False)


class AuthTicket(BaseModel):
    claims: ClaimSet
    properties: AuthProperties
    scheme: str


# --- Attempt ---


class AuthenticationAttempt:
    """One run of the flow for one callback. Not reusable."""

    def __init__(
        self,
        config: ProviderConfig,
        http: HttpExchanger,
        mapper: ClaimsMapper,
        *,
        discovery_cache: DiscoveryCache | None = None,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.config = config
        self.state = FlowState.START
        self.history: list[FlowState] = [FlowState.START]
        self.error: OAuthFlowError | None = None
        self.endpoints: ResolvedEndpoints | None = None
        self.tokens: TokenResponse | None = None
        self.profile: Mapping[str, Any] | None = None
        self.ticket: AuthTicket | None = None
        self._http = http
        self._mapper = mapper
        self._discovery_cache = discovery_cache

    @property
    def failed(self) -> bool:
        return self.state is FlowState.FAILED

    async def run(
        self,
        request: CallbackRequest,
        properties: AuthProperties | None = None,
        *,
        timeout: float | None = None,
    ) -> AuthTicket:
        """Drive the attempt to ``completed``.

        Raises:
            OAuthFlowError: Any failure; the attempt is left in ``failed``.
                Errors from caller-supplied hooks are wrapped in
                ``OAuthFlowError`` with the original as ``__cause__``.
            DeadlineExceededError: ``timeout`` elapsed first.
        """
        if self.state is not FlowState.START:
            raise RuntimeError("An authentication attempt can only run once")
        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                ticket = await self._run(request, properties or AuthProperties())
        except OAuthFlowError as exc:
            self.mark_failed(exc)
            raise
        except TimeoutError as exc:
            if not deadline.expired():
                raise self._fail_unexpected(exc) from exc
            error = DeadlineExceededError(timeout or 0.0)
            self.mark_failed(error)
            raise error from exc
        except asyncio.CancelledError:
            self.mark_failed(None)
            logger.warning("oauth_flow.attempt_cancelled", attempt_id=self.id)
            raise
        except Exception as exc:
            raise self._fail_unexpected(exc) from exc
        self.ticket = ticket
        return ticket

    def _fail_unexpected(self, exc: Exception) -> OAuthFlowError:
        error = OAuthFlowError(f"Unexpected {type(exc).__name__} while {self.state}: {exc}")
        self.mark_failed(error)
        return error

    def mark_failed(self, error: OAuthFlowError | None) -> None:
        if self.state is not FlowState.FAILED:
            failed_during = self.state
            self._transition(FlowState.FAILED)
        else:
            failed_during = self.history[-2]
        if error is not None:
            self.error = error
            logger.error(
                "oauth_flow.attempt_failed",
                attempt_id=self.id,
                scheme=self.config.scheme,
                failed_during=failed_during,
                error_type=type(error).__name__,
                error=error.message,
                status=error.status_code,
            )

    async def _run(self, request: CallbackRequest, properties: AuthProperties) -> AuthTicket:
        if request.error:
            raise CallbackError(request.error, request.error_description)
        if not request.code:
            raise CallbackError("missing_code", "The callback carried no authorization code")

        config = self.config
        if config.discovery_enabled:
            if not request.locator:
                raise MissingLocatorError(config.locator_parameter)
            self._transition(FlowState.RESOLVING)
            resolver = EndpointResolver(self._http, config, self._discovery_cache)
            self.endpoints = await resolver.resolve(request.locator)
            config = self.config = config.with_domain(self.endpoints.domain)

        self._transition(FlowState.EXCHANGING)
        self.tokens = await TokenExchangeClient(self._http, config).exchange(
            request.code,
            request.redirect_uri,
            code_verifier=request.code_verifier,
        )

        self._transition(FlowState.FETCHING_PROFILE)
        profile = await self._http.send(
            "GET",
            config.profile_endpoint,
            headers={"Authorization": f"Bearer {self.tokens.access_token}"},
            operation="user profile",
            timeout=config.request_timeout,
        )
        if not isinstance(profile, Mapping):
            raise ParseError(
                "User profile response is not a JSON object",
                body=str(profile),
                url=config.profile_endpoint,
            )
        self.profile = profile

        self._transition(FlowState.MAPPING)
        claims = self._mapper.map(profile, authentication_type=config.scheme)

        issued_at = datetime.now(UTC)
        update: dict[str, Any] = {
            "issued_at": issued_at,
            "expires_at": self.tokens.expires_at(issued_at),
        }
        if config.save_tokens:
            update["tokens"] = self.tokens.as_properties(issued_at)
        ticket = AuthTicket(
            claims=claims,
            properties=properties.model_copy(update=update),
            scheme=config.scheme,
        )
        self._transition(FlowState.COMPLETED)
        logger.info(
            "oauth_flow.attempt_completed",
            attempt_id=self.id,
            scheme=config.scheme,
            locator=request.locator,
            claims=len(claims),
        )
        return ticket

    def _transition(self, state: FlowState) -> None:
        logger.debug("oauth_flow.transition", attempt_id=self.id, source=self.state, target=state)
        self.state = state
        self.history.append(state)


# --- Flow ---


class OAuthFlow:
    """Entry point the host calls for challenges and callbacks.

    Usage::

        async with OAuthFlow(zoho_config(client_id, secret)) as flow:
            url = flow.build_authorization_url(state=state, redirect_uri=callback)
            ...
            ticket = await flow.authenticate(
                CallbackRequest.from_query(query, redirect_uri=callback)
            )
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        http: HttpExchanger | None = None,
        hooks: Sequence[ClaimsHook] = (),
        discovery_cache: DiscoveryCache | None = None,
        timeout: float | None = None,
    ) -> None:
        self._config = config
        self._owns_http = http is None
        self._http = http or HttpExchanger()
        self._mapper = ClaimsMapper(config.claim_rules, hooks, issuer=config.issuer)
        self._discovery_cache = discovery_cache
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, *, hooks: Sequence[ClaimsHook] = ()) -> OAuthFlow:
        """Build a flow, its HTTP client and discovery cache from ``Settings``."""
        cache = None
        if settings.discovery_cache_ttl_seconds > 0:
            cache = DiscoveryCache(ttl_seconds=settings.discovery_cache_ttl_seconds)
        flow = cls(
            settings.provider_config(),
            http=HttpExchanger(timeout=settings.http_timeout, user_agent=settings.http_user_agent),
            hooks=hooks,
            discovery_cache=cache,
            timeout=settings.attempt_timeout,
        )
        flow._owns_http = True
        return flow

    async def __aenter__(self) -> OAuthFlow:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_http:
            await self._http.close()

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def add_claims_hook(self, hook: ClaimsHook) -> None:
        self._mapper.add_hook(hook)

    def build_authorization_url(
        self,
        *,
        state: str,
        redirect_uri: str,
        code_verifier: str | None = None,
        scopes: Sequence[str] | None = None,
    ) -> str:
        """Build the provider URL the user agent is redirected to."""
        config = self._config
        if not config.authorization_endpoint:
            raise ValueError(f"No authorization endpoint configured for scheme {config.scheme!r}")
        params: dict[str, str] = {
            "client_id": config.client_id,
            "scope": " ".join(scopes if scopes is not None else config.scopes),
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "state": state,
        }
        if config.use_pkce:
            if not code_verifier:
                raise ValueError("PKCE is enabled; a code verifier is required")
            params["code_challenge"] = code_challenge_s256(code_verifier)
            params["code_challenge_method"] = "S256"
        params.update(config.authorization_parameters)

        query = urllib.parse.urlencode(params, quote_via=urllib.parse.quote)
        separator = "&" if "?" in config.authorization_endpoint else "?"
        return f"{config.authorization_endpoint}{separator}{query}"

    def start_attempt(self) -> AuthenticationAttempt:
        return AuthenticationAttempt(
            self._config,
            self._http,
            self._mapper,
            discovery_cache=self._discovery_cache,
        )

    async def authenticate(
        self,
        request: CallbackRequest,
        properties: AuthProperties | None = None,
        *,
        timeout: float | None = None,
    ) -> AuthTicket:
        """Run one attempt for ``request`` and return its ticket.

        Raises:
            OAuthFlowError: The attempt failed; no partial ticket is issued.
            DeadlineExceededError: ``timeout`` elapsed first.
        """
        deadline = timeout if timeout is not None else self.timeout
        return await self.start_attempt().run(request, properties, timeout=deadline)
