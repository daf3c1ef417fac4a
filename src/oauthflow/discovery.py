"""Regional endpoint discovery.

Some providers host their token and user-info endpoints on a per-region
domain. The callback names the region (the *locator*), and a fixed discovery
document maps each locator to its domain::

    GET <discovery_endpoint>
    {"locations": {"us": "https://accounts.zoho.com", "eu": "https://accounts.zoho.eu"}}
"""

from __future__ import annotations

import time
from collections.abc import Mapping

import structlog
from pydantic import BaseModel, Field

from oauthflow.config.provider import ProviderConfig, is_absolute_http_url
from oauthflow.exceptions import LocatorNotFoundError, ParseError, ResolutionError
from oauthflow.http import HttpExchanger

logger = structlog.get_logger()


# --- Models ---


class DiscoveryResult(BaseModel):
    locations: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: object, *, url: str = "") -> DiscoveryResult:
        if not isinstance(payload, Mapping) or not isinstance(payload.get("locations"), Mapping):
            raise ParseError(
                "Discovery response has no 'locations' object", body=str(payload), url=url
            )
        locations = {str(k): str(v) for k, v in payload["locations"].items() if v is not None}
        return cls(locations=locations)


class ResolvedEndpoints(BaseModel):
    locator: str
    domain: str
    token_endpoint: str
    profile_endpoint: str


# --- Cache ---


class _CacheEntry:
    __slots__ = ("domain", "expires_at")

    def __init__(self, domain: str, ttl: float) -> None:
        self.domain = domain
        self.expires_at = time.monotonic() + ttl

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class DiscoveryCache:
    """Shared locator -> domain map with a TTL.

    Entries are written only after a discovery miss and are independent of
    the attempt that wrote them. Reads never block.
    """

    def __init__(self, ttl_seconds: float = 3600.0) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, _CacheEntry] = {}

    def get(self, locator: str) -> str | None:
        entry = self._entries.get(locator)
        if entry is None:
            return None
        if entry.expired:
            self._entries.pop(locator, None)
            return None
        return entry.domain

    def store(self, result: DiscoveryResult) -> None:
        for locator, domain in result.locations.items():
            self._entries[locator] = _CacheEntry(domain, self.ttl_seconds)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# --- Resolver ---


class EndpointResolver:
    """Turns a locator into absolute token and profile endpoints."""

    def __init__(
        self,
        http: HttpExchanger,
        config: ProviderConfig,
        cache: DiscoveryCache | None = None,
    ) -> None:
        if not config.discovery_endpoint:
            raise ValueError("EndpointResolver requires a configured discovery endpoint")
        self._http = http
        self._config = config
        self._cache = cache

    async def discover(self) -> DiscoveryResult:
        """Fetch and parse the discovery document."""
        url = self._config.discovery_endpoint or ""
        payload = await self._http.send(
            "GET",
            url,
            operation="server info",
            timeout=self._config.request_timeout,
        )
        result = DiscoveryResult.from_payload(payload, url=url)
        if self._cache is not None:
            self._cache.store(result)
        return result

    async def resolve(self, locator: str) -> ResolvedEndpoints:
        """Resolve ``locator`` to endpoints.

        Raises:
            LocatorNotFoundError: The discovery document has no such locator.
            ResolutionError: The advertised domain is not an absolute URL.
        """
        domain = self._cache.get(locator) if self._cache is not None else None
        if domain is None:
            result = await self.discover()
            domain = result.locations.get(locator)
            if domain is None:
                logger.warning(
                    "endpoint_resolver.locator_not_found",
                    locator=locator,
                    available=sorted(result.locations),
                )
                raise LocatorNotFoundError(locator, sorted(result.locations))
        else:
            logger.debug("endpoint_resolver.cache_hit", locator=locator)

        if not is_absolute_http_url(domain):
            raise ResolutionError(f"Discovered domain {domain!r} is not an absolute URL", locator)

        scoped = self._config.with_domain(domain)
        endpoints = ResolvedEndpoints(
            locator=locator,
            domain=domain,
            token_endpoint=scoped.token_endpoint,
            profile_endpoint=scoped.profile_endpoint,
        )
        logger.info(
            "endpoint_resolver.resolved",
            locator=locator,
            domain=domain,
            token_endpoint=endpoints.token_endpoint,
        )
        return endpoints
