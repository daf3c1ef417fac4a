"""Profile-to-claims mapping.

A ``ClaimsMapper`` walks an ordered list of ``ClaimRule`` objects over the
provider's user-info document, then hands the in-progress ``ClaimSet`` to
every registered hook so provider-specific code can add or rewrite claims.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from enum import StrEnum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from oauthflow.exceptions import ClaimMappingError

logger = structlog.get_logger()

DEFAULT_ISSUER = "LOCAL AUTHORITY"

_MISSING = object()


# --- Enums ---


class ClaimTypes(StrEnum):
    NAME_IDENTIFIER = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/nameidentifier"
    NAME = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/name"
    EMAIL = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress"
    GIVEN_NAME = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/givenname"
    SURNAME = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/surname"
    LOCALITY = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/locality"
    WEBPAGE = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/webpage"
    ROLE = "http://schemas.microsoft.com/ws/2008/06/identity/claims/role"


class ClaimValueTypes(StrEnum):
    STRING = "http://www.w3.org/2001/XMLSchema#string"
    BOOLEAN = "http://www.w3.org/2001/XMLSchema#boolean"
    INTEGER = "http://www.w3.org/2001/XMLSchema#integer"
    JSON = "JSON"


# --- Models ---


class Claim(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    value: str
    value_type: str = ClaimValueTypes.STRING
    issuer: str = DEFAULT_ISSUER


class ClaimRule(BaseModel):
    """Copy the value at ``path`` in the profile into a claim of ``claim_type``.

    ``path`` is dotted (``"address.city"``); numeric segments index into
    lists (``"emails.0.value"``).
    """

    model_config = ConfigDict(frozen=True)

    claim_type: str
    path: str
    required: bool = False
    value_type: str = ClaimValueTypes.STRING


class ClaimSet(BaseModel):
    """Ordered claims plus the identity handle the host builds a session from."""

    claims: list[Claim] = Field(default_factory=list)
    authentication_type: str | None = None
    name_claim_type: str = ClaimTypes.NAME
    role_claim_type: str = ClaimTypes.ROLE

    def __len__(self) -> int:
        return len(self.claims)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.authentication_type)

    @property
    def name(self) -> str | None:
        claim = self.find_first(self.name_claim_type)
        return claim.value if claim else None

    def add(
        self,
        claim_type: str,
        value: str,
        *,
        value_type: str = ClaimValueTypes.STRING,
        issuer: str = DEFAULT_ISSUER,
    ) -> Claim:
        claim = Claim(type=claim_type, value=value, value_type=value_type, issuer=issuer)
        self.claims.append(claim)
        return claim

    def remove(self, claim_type: str) -> int:
        """Drop every claim of ``claim_type`` and return how many were removed."""
        before = len(self.claims)
        self.claims = [c for c in self.claims if c.type != claim_type]
        return before - len(self.claims)

    def find_first(self, claim_type: str) -> Claim | None:
        return next((c for c in self.claims if c.type == claim_type), None)

    def find_all(self, claim_type: str) -> list[Claim]:
        return [c for c in self.claims if c.type == claim_type]

    def has_claim(self, claim_type: str, value: str | None = None) -> bool:
        return any(
            c.type == claim_type and (value is None or c.value == value) for c in self.claims
        )

    def pairs(self) -> list[tuple[str, str]]:
        """Return ``(type, value)`` tuples in insertion order."""
        return [(c.type, c.value) for c in self.claims]


ClaimsHook = Callable[[Mapping[str, Any], ClaimSet], None]


# --- Mapper ---


class ClaimsMapper:
    """Applies claim rules and then hooks to a profile payload."""

    def __init__(
        self,
        rules: Sequence[ClaimRule] = (),
        hooks: Sequence[ClaimsHook] = (),
        *,
        issuer: str = DEFAULT_ISSUER,
    ) -> None:
        self.rules = list(rules)
        self.issuer = issuer
        self._hooks: list[ClaimsHook] = list(hooks)

    def add_hook(self, hook: ClaimsHook) -> None:
        self._hooks.append(hook)

    def map(
        self, profile: Mapping[str, Any], *, authentication_type: str | None = None
    ) -> ClaimSet:
        """Build a ``ClaimSet`` from ``profile``.

        Rules whose path is absent, null or an empty string are skipped,
        unless the rule is required.

        Raises:
            ClaimMappingError: A required rule found no value.
        """
        claim_set = ClaimSet(authentication_type=authentication_type)
        for rule in self.rules:
            raw = _lookup_path(profile, rule.path)
            if raw is _MISSING or raw is None or raw == "":
                if rule.required:
                    logger.error(
                        "claims_mapper.required_claim_missing",
                        claim_type=rule.claim_type,
                        path=rule.path,
                    )
                    raise ClaimMappingError(rule.claim_type, rule.path)
                continue
            claim_set.add(
                rule.claim_type,
                _render(raw),
                value_type=rule.value_type,
                issuer=self.issuer,
            )

        for hook in self._hooks:
            hook(profile, claim_set)

        logger.debug(
            "claims_mapper.mapped",
            rules=len(self.rules),
            hooks=len(self._hooks),
            claims=len(claim_set),
        )
        return claim_set


def _lookup_path(document: Any, path: str) -> Any:
    """Walk a dotted path through nested mappings and lists."""
    current = document
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return _MISSING
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value
    # JSON text for bools, numbers and nested structures
    return json.dumps(value, separators=(",", ":"), sort_keys=True)
