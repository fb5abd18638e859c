"""
PriceCache - time-bounded, coalescing memoization in front of a PriceProvider.

Properties:
- Entries are keyed by (coin id, sorted currency list) and live for ``ttl_seconds``
- At most ``max_entries`` entries; least-recently-used entries are evicted first
- At most one provider fetch in flight per key; concurrent callers share it
- A waiter that is cancelled never cancels the shared fetch
- Failed fetches write nothing; optionally an expired entry is served instead
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from loguru import logger

from iogmcp.config import CacheConfig
from iogmcp.exceptions import InvalidInputError, ProviderUnavailableError, RateLimitedError
from iogmcp.pricing.models import CacheKey, PriceQuote, make_cache_key

__all__ = ["CacheEntry", "PriceCache"]

# Failures that may be papered over with an expired quote
_STALE_SERVABLE_ERRORS = (ProviderUnavailableError, RateLimitedError)


@dataclass(frozen=True)
class CacheEntry:
    quote: PriceQuote
    stored_at: float


def _consume_task_result(task: asyncio.Task) -> None:
    # Marks the exception as retrieved when every waiter has gone away
    if not task.cancelled():
        task.exception()


class PriceCache:
    """
    Coalescing TTL/LRU cache for price quotes.

    All bookkeeping happens between awaits, so every insert, eviction and
    in-flight registration is a single step on the event loop.
    """

    def __init__(
        self,
        provider: Any,
        ttl_seconds: float = 60.0,
        max_entries: int = 512,
        stale_if_error_seconds: float = 0.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if stale_if_error_seconds < 0:
            raise ValueError("stale_if_error_seconds cannot be negative")

        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.stale_if_error_seconds = stale_if_error_seconds
        self._clock = clock or time.monotonic

        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._inflight: Dict[CacheKey, asyncio.Task] = {}
        self._sweeper: Optional[asyncio.Task] = None

        self._stats = {
            "hits": 0,
            "misses": 0,
            "coalesced": 0,
            "provider_calls": 0,
            "stale_served": 0,
            "evictions": 0,
        }

    @classmethod
    def from_config(cls, provider: Any, config: CacheConfig, clock: Optional[Callable[[], float]] = None) -> "PriceCache":
        return cls(
            provider,
            ttl_seconds=config.ttl_seconds,
            max_entries=config.max_entries,
            stale_if_error_seconds=config.stale_if_error_seconds,
            clock=clock,
        )

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now < entry.stored_at + self.ttl_seconds

    def _is_stale_servable(self, entry: CacheEntry, now: float) -> bool:
        return now < entry.stored_at + self.ttl_seconds + self.stale_if_error_seconds

    async def get_or_fetch(self, coin_id: str, currencies: Iterable[str]) -> PriceQuote:
        """
        Return a fresh quote for ``coin_id`` in ``currencies``, fetching it if needed.

        Raises:
            InvalidInputError: blank coin id or empty currency set
            PricingError: the provider failed and no servable entry exists
        """
        if not isinstance(coin_id, str) or not coin_id.strip():
            raise InvalidInputError("coinId must be a non-empty string", field="coinId", value=coin_id)
        if not isinstance(currencies, (str, list, tuple, set, frozenset)):
            raise InvalidInputError("currencies must be a string or a list of strings", field="currencies", value=currencies)
        key = make_cache_key(coin_id, currencies)
        if not key[1]:
            raise InvalidInputError("At least one currency code is required", field="currencies", value=currencies)

        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry, self._clock()):
            self._entries.move_to_end(key)
            self._stats["hits"] += 1
            logger.debug(f"Price cache hit for {key}")
            return entry.quote

        task = self._inflight.get(key)
        if task is None:
            self._stats["misses"] += 1
            logger.debug(f"Price cache miss for {key}")
            task = asyncio.ensure_future(self._fetch(key))
            task.add_done_callback(_consume_task_result)
            self._inflight[key] = task
        else:
            self._stats["coalesced"] += 1
            logger.debug(f"Joining in-flight fetch for {key}")

        return await asyncio.shield(task)

    async def _fetch(self, key: CacheKey) -> PriceQuote:
        coin_id, currencies = key
        try:
            self._stats["provider_calls"] += 1
            try:
                quote = await self.provider.get_price(coin_id, currencies)
            except _STALE_SERVABLE_ERRORS as e:
                entry = self._entries.get(key)
                if entry is not None and self.stale_if_error_seconds > 0 and self._is_stale_servable(entry, self._clock()):
                    self._stats["stale_served"] += 1
                    logger.warning(f"Serving stale quote for {key} after provider failure: {e.message}")
                    return entry.quote
                raise

            self._store(key, quote)
            return quote
        finally:
            self._inflight.pop(key, None)

    def _store(self, key: CacheKey, quote: PriceQuote) -> None:
        self._entries[key] = CacheEntry(quote=quote, stored_at=self._clock())
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self._stats["evictions"] += 1
            logger.debug(f"Evicted {evicted_key} from price cache")

    def peek(self, coin_id: str, currencies: Iterable[str]) -> Optional[CacheEntry]:
        """Return the stored entry for a key, fresh or not, without touching LRU order."""
        return self._entries.get(make_cache_key(coin_id, currencies))

    def invalidate(self, coin_id: Optional[str] = None) -> int:
        """Drop all entries, or only those for ``coin_id``. Returns the number removed."""
        if coin_id is None:
            removed = len(self._entries)
            self._entries.clear()
        else:
            keys = [k for k in self._entries if k[0] == coin_id.strip()]
            for k in keys:
                del self._entries[k]
            removed = len(keys)

        if removed:
            logger.debug(f"Invalidated {removed} price cache entries")
        return removed

    def sweep_expired(self) -> int:
        """Remove entries that can no longer be served, even as stale."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not self._is_stale_servable(e, now)]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug(f"Swept {len(expired)} expired price cache entries")
        return len(expired)

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.sweep_expired()

    def start_sweeper(self, interval_seconds: float) -> None:
        """Start periodic expiry sweeping on the running loop (no-op if already running)."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.ensure_future(self._sweep_loop(interval_seconds))
        logger.info(f"Price cache sweeper started (every {interval_seconds}s)")

    async def aclose(self) -> None:
        """Stop the sweeper and abandon outstanding fetches."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

        for task in list(self._inflight.values()):
            task.cancel()
        self._inflight.clear()

    def stats(self) -> Dict[str, int]:
        return {**self._stats, "size": len(self._entries), "inflight": len(self._inflight)}

    def __len__(self) -> int:
        return len(self._entries)
