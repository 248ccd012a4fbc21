"""
Tests for the httpx and requests transports.
"""

import httpx
import pytest
import requests
import responses
import respx

from resilient_network.core.models import TransportRequest
from resilient_network.core.transport import (
    HTTPXTransport,
    RequestsTransport,
    Transport,
)


class TestHTTPXTransport:
    """httpx.AsyncClient transport."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_returns_any_status(self):
        respx.get("https://api.example.com/missing").mock(
            return_value=httpx.Response(404, json={"error": "not found"})
        )
        transport = HTTPXTransport()

        try:
            response = await transport.send(TransportRequest("https://api.example.com/missing"))
        finally:
            await transport.aclose()

        assert response.status == 404
        assert response.ok is False
        assert '"not found"' in response.body
        assert response.duration >= 0
        assert response.reason == "Not Found"

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_method_headers_and_body(self):
        route = respx.post("https://api.example.com/users").mock(
            return_value=httpx.Response(201, text="created")
        )
        transport = HTTPXTransport()

        try:
            response = await transport.send(TransportRequest(
                "https://api.example.com/users",
                method="POST",
                headers={"X-Trace": "abc"},
                body='{"name": "John"}',
                timeout=5.0,
            ))
        finally:
            await transport.aclose()

        assert response.status == 201
        sent = route.calls.last.request
        assert sent.headers["X-Trace"] == "abc"
        assert sent.content == b'{"name": "John"}'

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error_propagates(self):
        respx.get("https://api.example.com/down").mock(
            side_effect=httpx.ConnectError("connection refused")
        )
        transport = HTTPXTransport()

        try:
            with pytest.raises(httpx.ConnectError):
                await transport.send(TransportRequest("https://api.example.com/down"))
        finally:
            await transport.aclose()

    @pytest.mark.asyncio
    async def test_one_client_per_proxy(self):
        transport = HTTPXTransport()

        direct = transport._get_client(None)
        proxied = transport._get_client("http://10.0.0.1:8080")

        assert transport._get_client(None) is direct
        assert transport._get_client("http://10.0.0.1:8080") is proxied
        assert direct is not proxied
        assert transport.client_count == 2

        await transport.aclose()
        assert transport.client_count == 0

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_cache_is_bounded(self):
        respx.get("https://api.example.com/ping").mock(return_value=httpx.Response(200))
        transport = HTTPXTransport(max_clients=2)

        direct = transport._get_client(None)
        transport._get_client("http://10.0.0.1:8080")
        transport._get_client("http://10.0.0.2:8080")

        # самый старый клиент вытеснен, но ещё не закрыт
        assert transport.client_count == 2
        assert direct.is_closed is False

        response = await transport.send(TransportRequest("https://api.example.com/ping"))

        assert response.status == 200
        assert direct.is_closed is True
        assert transport._get_client(None) is not direct
        assert transport.client_count == 2

        await transport.aclose()
        assert transport.client_count == 0

    def test_max_clients_must_be_positive(self):
        with pytest.raises(ValueError):
            HTTPXTransport(max_clients=0)

    def test_satisfies_protocol(self):
        assert isinstance(HTTPXTransport(), Transport)


class TestRequestsTransport:
    """requests.Session transport run in the executor."""

    @pytest.mark.asyncio
    @responses.activate
    async def test_returns_any_status(self):
        responses.add(
            responses.GET,
            "https://api.example.com/broken",
            json={"error": "boom"},
            status=503,
        )
        transport = RequestsTransport()

        try:
            response = await transport.send(TransportRequest("https://api.example.com/broken"))
        finally:
            await transport.aclose()

        assert response.status == 503
        assert '"boom"' in response.body
        assert response.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    @responses.activate
    async def test_sends_body(self):
        responses.add(responses.PUT, "https://api.example.com/users/1", status=200, body="ok")
        transport = RequestsTransport()

        try:
            await transport.send(TransportRequest(
                "https://api.example.com/users/1", method="PUT", body="payload"
            ))
        finally:
            await transport.aclose()

        assert responses.calls[0].request.body == "payload"

    @pytest.mark.asyncio
    @responses.activate
    async def test_network_error_propagates(self):
        responses.add(
            responses.GET,
            "https://api.example.com/down",
            body=requests.exceptions.ConnectionError("reset by peer"),
        )
        transport = RequestsTransport()

        try:
            with pytest.raises(requests.exceptions.ConnectionError):
                await transport.send(TransportRequest("https://api.example.com/down"))
        finally:
            await transport.aclose()
