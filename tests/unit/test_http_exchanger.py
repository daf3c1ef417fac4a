"""Tests for the backchannel HttpExchanger."""

from __future__ import annotations

import asyncio
import urllib.parse
from collections.abc import AsyncIterator

import httpx
import pytest
import respx
from structlog.testing import capture_logs

from oauthflow.exceptions import HttpError, ParseError, TransportError
from oauthflow.http import HttpExchanger

URL = "https://idp.example.com/api/info"


# ---------------------------------------------------------------------------
# Successful exchanges
# ---------------------------------------------------------------------------


class TestSuccess:
    @pytest.mark.asyncio
    @respx.mock
    async def test_get_returns_parsed_json(self) -> None:
        route = respx.get(URL).mock(return_value=httpx.Response(200, json={"ok": True}))
        async with HttpExchanger() as http:
            payload = await http.send("GET", URL)
        assert payload == {"ok": True}
        request = route.calls.last.request
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"] == "oauthflow/0.1.0"

    @pytest.mark.asyncio
    @respx.mock
    async def test_extra_headers_are_sent(self) -> None:
        route = respx.get(URL).mock(return_value=httpx.Response(200, json={}))
        async with HttpExchanger() as http:
            await http.send("GET", URL, headers={"Authorization": "Bearer abc"})
        assert route.calls.last.request.headers["Authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    @respx.mock
    async def test_post_form_body(self) -> None:
        route = respx.post(URL).mock(return_value=httpx.Response(200, json={"done": 1}))
        async with HttpExchanger() as http:
            await http.send("POST", URL, data={"grant_type": "authorization_code", "code": "c"})
        request = route.calls.last.request
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        form = urllib.parse.parse_qs(request.content.decode())
        assert form == {"grant_type": ["authorization_code"], "code": ["c"]}

    @pytest.mark.asyncio
    @respx.mock
    async def test_basic_auth_header(self) -> None:
        route = respx.post(URL).mock(return_value=httpx.Response(200, json={}))
        async with HttpExchanger() as http:
            await http.send("POST", URL, data={}, auth=httpx.BasicAuth("id", "secret"))
        assert route.calls.last.request.headers["Authorization"].startswith("Basic ")


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    @respx.mock
    async def test_non_success_raises_http_error_with_body(self) -> None:
        respx.get(URL).mock(
            return_value=httpx.Response(
                500,
                text="upstream exploded",
                headers={"X-Request-Id": "req-1"},
            )
        )
        async with HttpExchanger() as http:
            with pytest.raises(HttpError) as exc_info:
                await http.send("GET", URL, operation="server info")
        err = exc_info.value
        assert err.status_code == 500
        assert err.body == "upstream exploded"
        assert err.headers["x-request-id"] == "req-1"
        assert err.method == "GET"
        assert err.url == URL
        assert "server info" in err.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_error_keeps_json_body(self) -> None:
        respx.get(URL).mock(return_value=httpx.Response(401, json={"error": "invalid_token"}))
        async with HttpExchanger() as http:
            with pytest.raises(HttpError) as exc_info:
                await http.send("GET", URL)
        assert exc_info.value.status_code == 401
        assert "invalid_token" in exc_info.value.body

    @pytest.mark.asyncio
    @respx.mock
    async def test_failure_is_logged_with_status_headers_and_body(self) -> None:
        respx.get(URL).mock(return_value=httpx.Response(503, text="maintenance"))
        async with HttpExchanger() as http:
            with capture_logs() as logs, pytest.raises(HttpError):
                await http.send("GET", URL, operation="user profile")
        failed = [e for e in logs if e["event"] == "http_exchange.request_failed"]
        assert len(failed) == 1
        assert failed[0]["log_level"] == "error"
        assert failed[0]["status"] == 503
        assert failed[0]["body"] == "maintenance"
        assert "content-length" in failed[0]["headers"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_json_raises_parse_error(self) -> None:
        respx.get(URL).mock(return_value=httpx.Response(200, text="<html>nope</html>"))
        async with HttpExchanger() as http:
            with pytest.raises(ParseError) as exc_info:
                await http.send("GET", URL)
        assert exc_info.value.body == "<html>nope</html>"
        assert exc_info.value.url == URL

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_body_raises_parse_error(self) -> None:
        respx.get(URL).mock(return_value=httpx.Response(200, content=b""))
        async with HttpExchanger() as http:
            with pytest.raises(ParseError):
                await http.send("GET", URL)

    @pytest.mark.asyncio
    @respx.mock
    async def test_connect_error_raises_transport_error(self) -> None:
        respx.get(URL).mock(side_effect=httpx.ConnectError("connection refused"))
        async with HttpExchanger() as http:
            with pytest.raises(TransportError) as exc_info:
                await http.send("GET", URL)
        assert exc_info.value.url == URL
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_raises_transport_error(self) -> None:
        respx.get(URL).mock(side_effect=httpx.ReadTimeout("too slow"))
        async with HttpExchanger() as http:
            with pytest.raises(TransportError):
                await http.send("GET", URL)

    @pytest.mark.asyncio
    async def test_undecodable_body_raises_transport_error(self) -> None:
        async def corrupt_gzip() -> AsyncIterator[bytes]:
            yield b"this is not gzip"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, content=corrupt_gzip()
            )

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        with capture_logs() as logs:
            async with HttpExchanger(client) as http:
                with pytest.raises(TransportError) as exc_info:
                    await http.send("GET", URL, operation="user profile")
        await client.aclose()
        assert isinstance(exc_info.value.__cause__, httpx.DecodingError)
        assert logs[-1]["event"] == "http_exchange.transport_failed"
        assert logs[-1]["error_type"] == "DecodingError"


# ---------------------------------------------------------------------------
# Lifecycle and cancellation
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_owned_client_closed_on_exit(self) -> None:
        async with HttpExchanger() as http:
            assert not http.is_closed
        assert http.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self) -> None:
        client = httpx.AsyncClient()
        async with HttpExchanger(client) as http:
            pass
        assert not http.is_closed
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        started = asyncio.Event()

        async def slow_handler(request: httpx.Request) -> httpx.Response:
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(200, json={})

        client = httpx.AsyncClient(transport=httpx.MockTransport(slow_handler))
        http = HttpExchanger(client)
        task = asyncio.create_task(http.send("GET", URL))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await client.aclose()
