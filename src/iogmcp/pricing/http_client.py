"""
Async HTTP transport for market-data providers.

Each provider registers a named endpoint (base URL, headers, timeout and an
optional minimum spacing between calls). The retry policy for outbound
calls lives here:

- 5xx, 429 and network/timeout failures are retried
- backoff is ``retry_delay * 2**attempt`` capped at ``max_retry_delay``
- a 429 ``Retry-After`` (seconds) raises the delay to at least that value
- other 4xx responses and undecodable bodies fail immediately
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from loguru import logger

__all__ = ["DataHTTPClient", "HTTPClientError"]


class HTTPClientError(Exception):
    """A call that ended without a usable JSON body."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        retry_after: Optional[float] = None,
        is_timeout: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text
        self.retry_after = retry_after
        self.is_timeout = is_timeout

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a ``Retry-After`` header. HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


@dataclass
class _Endpoint:
    base_url: str
    headers: Dict[str, str]
    timeout: float
    min_interval: Optional[float] = None
    client_kwargs: Dict[str, Any] = field(default_factory=dict)
    client: Optional[httpx.AsyncClient] = None
    last_call_at: Optional[float] = None

    def open(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(
                base_url=self.base_url, headers=self.headers, timeout=self.timeout, **self.client_kwargs
            )
        return self.client

    async def wait_turn(self) -> None:
        now = time.monotonic()
        if self.min_interval is None or self.last_call_at is None:
            self.last_call_at = now
            return

        # Reserve the slot before sleeping so concurrent callers queue behind it
        slot = max(now, self.last_call_at + self.min_interval)
        self.last_call_at = slot
        remaining = slot - now
        if remaining > 0:
            logger.debug(f"Spacing calls to {self.base_url}: waiting {remaining:.2f}s")
            await asyncio.sleep(remaining)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None


class DataHTTPClient:
    """
    Async JSON client shared by the price providers.

    Example:
        ```python
        async with DataHTTPClient(default_timeout=10.0) as http:
            await http.add_endpoint("coingecko", "https://api.coingecko.com/api/v3")
            prices = await http.get("coingecko", "/simple/price",
                                    params={"ids": "cardano", "vs_currencies": "usd"})
        ```
    """

    def __init__(
        self,
        default_timeout: float = 10.0,
        default_headers: Optional[Dict[str, str]] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
        default_rate_limit: Optional[float] = None,
    ):
        """
        Args:
            default_timeout: Per-request timeout in seconds
            default_headers: Headers sent to every endpoint
            max_retries: Retries after the first attempt
            retry_delay: Backoff before the first retry, in seconds
            max_retry_delay: Cap on any single backoff
            default_rate_limit: Minimum seconds between calls to one endpoint (None = unlimited)
        """
        self._default_timeout = default_timeout
        self._default_headers = dict(default_headers or {})
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._max_retry_delay = max_retry_delay
        self._default_rate_limit = default_rate_limit
        self._endpoints: Dict[str, _Endpoint] = {}

    async def add_endpoint(
        self,
        name: str,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        rate_limit: Optional[float] = None,
        **client_kwargs: Any,
    ) -> None:
        """
        Register (or replace) a named endpoint.

        ``client_kwargs`` go to ``httpx.AsyncClient``, e.g.
        ``transport=httpx.MockTransport(...)`` in tests.
        """
        previous = self._endpoints.pop(name, None)
        if previous is not None:
            logger.warning(f"Replacing endpoint '{name}'")
            await previous.close()

        self._endpoints[name] = _Endpoint(
            base_url=base_url,
            headers={**self._default_headers, **(headers or {})},
            timeout=timeout or self._default_timeout,
            min_interval=self._default_rate_limit if rate_limit is None else rate_limit,
            client_kwargs=client_kwargs,
        )
        logger.debug(f"Endpoint '{name}' -> {base_url}")

    def has_endpoint(self, name: str) -> bool:
        return name in self._endpoints

    def get_endpoints(self) -> Dict[str, str]:
        """Endpoint names mapped to base URLs."""
        return {name: endpoint.base_url for name, endpoint in self._endpoints.items()}

    def _endpoint(self, name: str) -> _Endpoint:
        try:
            return self._endpoints[name]
        except KeyError:
            raise ValueError(f"Endpoint '{name}' not configured. Available: {sorted(self._endpoints)}") from None

    def _backoff_delay(self, attempt: int, error: HTTPClientError) -> float:
        delay = self._retry_delay * (2 ** attempt)
        if error.retry_after is not None:
            delay = max(delay, error.retry_after)
        return min(delay, self._max_retry_delay)

    async def get(
        self,
        endpoint_name: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
    ) -> Any:
        """
        GET ``path`` on a registered endpoint and decode the JSON body.

        Raises:
            ValueError: unknown endpoint
            HTTPClientError: once retries are exhausted or on a non-retryable failure
        """
        endpoint = self._endpoint(endpoint_name)
        attempts = 1 + (self._max_retries if retries is None else retries)
        target = f"{endpoint_name}{path}"

        for attempt in range(attempts):
            await endpoint.wait_turn()
            logger.debug(f"GET {target} (attempt {attempt + 1}/{attempts})")
            try:
                return await self._send(endpoint, path, params, headers, timeout)
            except HTTPClientError as e:
                error = e

            if not error.retryable or attempt == attempts - 1:
                break
            delay = self._backoff_delay(attempt, error)
            logger.debug(f"Retrying {target} in {delay:.2f}s: {error}")
            await asyncio.sleep(delay)

        logger.warning(f"GET {target} failed: {error}")
        raise error

    @staticmethod
    async def _send(
        endpoint: _Endpoint,
        path: str,
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]],
        timeout: Optional[float],
    ) -> Any:
        options: Dict[str, Any] = {"params": params, "headers": headers}
        if timeout is not None:
            options["timeout"] = timeout

        try:
            response = await endpoint.open().get(path, **options)
        except httpx.TimeoutException as e:
            raise HTTPClientError(f"Request timed out: {e}", is_timeout=True) from e
        except httpx.RequestError as e:
            raise HTTPClientError(f"Request failed: {e}") from e

        if response.is_error:
            status = response.status_code
            retry_after = _parse_retry_after(response.headers.get("Retry-After")) if status == 429 else None
            raise HTTPClientError(
                f"HTTP {status} error: {response.text}", status, response.text, retry_after=retry_after
            )

        try:
            return response.json()
        except ValueError as e:
            raise HTTPClientError(
                f"Invalid JSON response: {e}", response.status_code, response.text
            ) from e

    async def aclose(self) -> None:
        """Close every endpoint's client."""
        for name, endpoint in self._endpoints.items():
            await endpoint.close()
            logger.debug(f"Closed HTTP client for endpoint '{name}'")
        self._endpoints.clear()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
