"""
Tests for DataHTTPClient retry classification and backoff.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock, patch
import httpx

from iogmcp.pricing.http_client import DataHTTPClient, HTTPClientError, _parse_retry_after


def _sequence_transport(responses):
    """MockTransport answering with ``responses`` in order; exceptions are raised."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        item = responses[min(len(calls) - 1, len(responses) - 1)]
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.MockTransport(handler), calls


class TestHTTPClientBasics:
    """Test basic HTTP client functionality."""

    def test_initialization(self):
        client = DataHTTPClient(default_timeout=5.0, max_retries=2)

        assert client._default_timeout == 5.0
        assert client._max_retries == 2
        assert client.get_endpoints() == {}

    @pytest.mark.asyncio
    async def test_add_and_get_endpoints(self):
        client = DataHTTPClient()

        await client.add_endpoint("api1", "https://api1.example")
        await client.add_endpoint("api2", "https://api2.example", headers={"x-key": "secret"})

        assert client.get_endpoints() == {
            "api1": "https://api1.example",
            "api2": "https://api2.example",
        }
        assert client._endpoints["api2"].headers["x-key"] == "secret"
        assert client.has_endpoint("api1")
        assert not client.has_endpoint("missing")

        await client.aclose()

    @pytest.mark.asyncio
    async def test_replacing_endpoint_closes_old_client(self):
        transport, _ = _sequence_transport([httpx.Response(200, json={})])
        client = DataHTTPClient()
        await client.add_endpoint("cg", "https://old.example", transport=transport)
        await client.get("cg", "/ping")
        old = client._endpoints["cg"].client

        await client.add_endpoint("cg", "https://new.example")

        assert old.is_closed
        assert client.get_endpoints() == {"cg": "https://new.example"}
        await client.aclose()

    @pytest.mark.asyncio
    async def test_min_interval_spaces_calls(self):
        transport, calls = _sequence_transport([httpx.Response(200, json={})])
        client = DataHTTPClient(default_rate_limit=5.0)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await client.get("cg", "/a")
            await client.get("cg", "/b")

        assert len(calls) == 2
        mock_sleep.assert_awaited_once()
        assert 0 < mock_sleep.call_args.args[0] <= 5.0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_min_interval_spaces_concurrent_calls(self):
        transport, calls = _sequence_transport([httpx.Response(200, json={})])
        client = DataHTTPClient(default_rate_limit=5.0)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await asyncio.gather(*(client.get("cg", f"/{i}") for i in range(3)))

        assert len(calls) == 3
        delays = sorted(c.args[0] for c in mock_sleep.call_args_list)
        assert delays == pytest.approx([5.0, 10.0], abs=0.5)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unknown_endpoint_raises(self):
        client = DataHTTPClient()

        with pytest.raises(ValueError):
            await client.get("missing", "/path")

    @pytest.mark.asyncio
    async def test_successful_request_sends_params_and_headers(self):
        transport, calls = _sequence_transport([httpx.Response(200, json={"cardano": {"usd": 0.45}})])
        client = DataHTTPClient()
        await client.add_endpoint("cg", "https://api.example", headers={"x-key": "k"}, transport=transport)

        result = await client.get("cg", "/simple/price", params={"ids": "cardano"})

        assert result == {"cardano": {"usd": 0.45}}
        assert len(calls) == 1
        assert calls[0].url.params["ids"] == "cardano"
        assert calls[0].headers["x-key"] == "k"
        await client.aclose()


class TestRetryClassification:
    """Which failures are retried and how long the client waits."""

    @pytest.mark.asyncio
    async def test_server_error_is_retried_until_exhausted(self):
        transport, calls = _sequence_transport([httpx.Response(503, text="down")])
        client = DataHTTPClient(max_retries=2, retry_delay=0.5)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get("cg", "/x")

        assert exc_info.value.status_code == 503
        assert len(calls) == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_server_error_then_success(self):
        transport, calls = _sequence_transport([
            httpx.Response(500, text="oops"),
            httpx.Response(200, json={"ok": True}),
        ])
        client = DataHTTPClient(max_retries=3, retry_delay=0.1)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await client.get("cg", "/x")

        assert result == {"ok": True}
        assert len(calls) == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        transport, calls = _sequence_transport([httpx.Response(404, text="not found")])
        client = DataHTTPClient(max_retries=3)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get("cg", "/x")

        assert exc_info.value.status_code == 404
        assert len(calls) == 1
        mock_sleep.assert_not_called()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self):
        transport, calls = _sequence_transport([
            httpx.Response(429, headers={"Retry-After": "7"}, text="slow down"),
            httpx.Response(200, json={"ok": True}),
        ])
        client = DataHTTPClient(max_retries=2, retry_delay=1.0, max_retry_delay=30.0)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            assert await client.get("cg", "/x") == {"ok": True}

        mock_sleep.assert_awaited_once_with(7.0)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rate_limit_surfaces_after_bounded_attempts(self):
        transport, calls = _sequence_transport([httpx.Response(429, headers={"Retry-After": "120"})])
        client = DataHTTPClient(max_retries=1, retry_delay=1.0, max_retry_delay=10.0)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get("cg", "/x")

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 120.0
        assert len(calls) == 2
        # Capped by max_retry_delay
        mock_sleep.assert_awaited_once_with(10.0)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout_is_retried_and_flagged(self):
        transport, calls = _sequence_transport([httpx.ReadTimeout("timed out")])
        client = DataHTTPClient(max_retries=1, retry_delay=0.1)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get("cg", "/x")

        assert exc_info.value.is_timeout is True
        assert exc_info.value.status_code is None
        assert len(calls) == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self):
        transport, calls = _sequence_transport([
            httpx.ConnectError("refused"),
            httpx.Response(200, json=[1, 2]),
        ])
        client = DataHTTPClient(max_retries=2, retry_delay=0.1)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            assert await client.get("cg", "/x") == [1, 2]
        assert len(calls) == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_invalid_json_is_not_retried(self):
        transport, calls = _sequence_transport([httpx.Response(200, text="<html>")])
        client = DataHTTPClient(max_retries=3)
        await client.add_endpoint("cg", "https://api.example", transport=transport)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get("cg", "/x")

        assert "Invalid JSON" in str(exc_info.value)
        assert len(calls) == 1
        mock_sleep.assert_not_called()
        await client.aclose()


class TestRetryAfterParsing:

    @pytest.mark.parametrize("value,expected", [
        ("5", 5.0),
        ("0.5", 0.5),
        (None, None),
        ("", None),
        ("-1", None),
        ("Wed, 21 Oct 2015 07:28:00 GMT", None),
    ])
    def test_parse_retry_after(self, value, expected):
        assert _parse_retry_after(value) == expected
