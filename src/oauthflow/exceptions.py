"""oauthflow exceptions."""

from __future__ import annotations

from collections.abc import Mapping


class OAuthFlowError(Exception):
    """Base exception for every failure that ends an authentication attempt."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class HttpError(OAuthFlowError):
    """The remote server answered with a non-2xx status.

    The response body is always drained before this is raised, so ``body``
    holds whatever the server sent back.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        headers: Mapping[str, str] | None = None,
        body: str = "",
        method: str = "",
        url: str = "",
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.headers = dict(headers or {})
        self.body = body
        self.method = method
        self.url = url

    def __str__(self) -> str:
        return f"{self.message} (status={self.status_code}, body={self.body[:200]!r})"


class TransportError(OAuthFlowError):
    """No usable response arrived (connect failure, timeout, undecodable body)."""

    def __init__(self, message: str, *, method: str = "", url: str = "") -> None:
        super().__init__(message)
        self.method = method
        self.url = url


class ParseError(OAuthFlowError):
    """A response body was not the JSON document we expected."""

    def __init__(self, message: str, *, body: str = "", url: str = "") -> None:
        super().__init__(message)
        self.body = body
        self.url = url


class ResolutionError(OAuthFlowError):
    """Endpoint discovery could not produce usable endpoints."""

    def __init__(self, message: str, locator: str | None = None) -> None:
        super().__init__(message)
        self.locator = locator


class LocatorNotFoundError(ResolutionError):
    """The discovery document has no domain for the requested locator."""

    def __init__(self, locator: str, available: list[str] | None = None) -> None:
        super().__init__(f"Locator {locator!r} not found in discovery response", locator)
        self.available = available or []


class MissingLocatorError(ResolutionError):
    """Discovery is configured but the callback carried no locator value."""

    def __init__(self, parameter: str) -> None:
        super().__init__(f"Missing locator parameter {parameter!r} on callback request")
        self.parameter = parameter


class TokenError(OAuthFlowError):
    """The token endpoint answered 2xx but the payload is an OAuth error."""

    def __init__(
        self,
        error: str,
        description: str | None = None,
        uri: str | None = None,
    ) -> None:
        message = f"Token endpoint returned error {error!r}"
        if description:
            message = f"{message}: {description}"
        super().__init__(message)
        self.error = error
        self.description = description
        self.uri = uri


class ClaimMappingError(OAuthFlowError):
    """A required claim rule found nothing at its path."""

    def __init__(self, claim_type: str, path: str) -> None:
        super().__init__(f"Required claim {claim_type!r} missing at path {path!r}")
        self.claim_type = claim_type
        self.path = path


class CallbackError(OAuthFlowError):
    """The authorization callback itself reports a failure."""

    def __init__(self, error: str, description: str | None = None) -> None:
        message = f"Authorization callback failed: {error}"
        if description:
            message = f"{message} ({description})"
        super().__init__(message)
        self.error = error
        self.description = description


class DeadlineExceededError(OAuthFlowError):
    """The attempt did not finish before its deadline."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Authentication attempt exceeded its {timeout}s deadline")
        self.timeout = timeout
