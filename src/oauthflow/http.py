"""Backchannel HTTP exchanges with the identity provider."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from oauthflow.exceptions import HttpError, ParseError, TransportError

logger = structlog.get_logger()

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_USER_AGENT = "oauthflow/0.1.0"


class HttpExchanger:
    """Sends backchannel requests and returns the parsed JSON body.

    Responses are streamed and always drained and closed before returning.
    Failed responses are logged with their status, headers and body, and
    raised as ``HttpError``.

    Usage::

        async with HttpExchanger() as http:
            payload = await http.send("GET", "https://idp.example.com/info")
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        user_agent: str = _DEFAULT_USER_AGENT,
    ) -> None:
        self._owns_client = client is None
        self._http = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
        )

    # -- Async context manager --------------------------------------------

    async def __aenter__(self) -> HttpExchanger:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying transport if this exchanger created it."""
        if self._owns_client:
            await self._http.aclose()

    @property
    def is_closed(self) -> bool:
        return self._http.is_closed

    # -- Requests ---------------------------------------------------------

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        data: Mapping[str, str] | None = None,
        auth: httpx.Auth | None = None,
        operation: str = "request",
        timeout: float | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON document.

        Raises:
            HttpError: The server answered with a non-2xx status.
            TransportError: No usable response was received (connection,
                timeout or body decoding failure).
            ParseError: The body is not valid JSON.
        """
        request_headers = {"Accept": "application/json"}
        if headers:
            request_headers.update(headers)

        request = self._http.build_request(
            method,
            url,
            headers=request_headers,
            data=dict(data) if data is not None else None,
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )

        try:
            response = await self._http.send(
                request, auth=auth or httpx.USE_CLIENT_DEFAULT, stream=True
            )
            try:
                await response.aread()
            finally:
                await response.aclose()
        except httpx.RequestError as exc:
            logger.error(
                "http_exchange.transport_failed",
                operation=operation,
                method=method,
                url=url,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise TransportError(
                f"An error occurred while sending the {operation} request: {exc}",
                method=method,
                url=url,
            ) from exc

        if not response.is_success:
            _raise_for_status(response, operation=operation)
        return _parse_json(response, operation=operation)


def _raise_for_status(response: httpx.Response, *, operation: str) -> None:
    """Log and raise ``HttpError`` for a drained non-2xx response."""
    body = response.text
    headers = dict(response.headers)
    logger.error(
        "http_exchange.request_failed",
        operation=operation,
        method=response.request.method,
        url=str(response.request.url),
        status=response.status_code,
        headers=headers,
        body=body,
    )
    raise HttpError(
        f"An error occurred while retrieving the {operation}: "
        f"the remote server returned a {response.status_code} response",
        status_code=response.status_code,
        headers=headers,
        body=body,
        method=response.request.method,
        url=str(response.request.url),
    )


def _parse_json(response: httpx.Response, *, operation: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        body = response.text
        logger.error(
            "http_exchange.invalid_json",
            operation=operation,
            url=str(response.request.url),
            status=response.status_code,
            body=body,
        )
        raise ParseError(
            f"The {operation} response is not valid JSON",
            body=body,
            url=str(response.request.url),
        ) from exc
