"""
Coin catalog search.

Ranking (case-insensitive, over symbol and name):
1. exact symbol match
2. exact name match
3. symbol or name starts with the query
4. symbol or name contains the query
ties keep catalog order.
"""

import asyncio
import time
from typing import Any, Callable, List, Optional, Sequence

from loguru import logger

from iogmcp.exceptions import InvalidInputError, PricingError
from iogmcp.pricing.models import CoinSearchResult

__all__ = ["rank_coins", "CoinSearch"]

_EXACT_SYMBOL, _EXACT_NAME, _PREFIX, _SUBSTRING = range(4)


def _match_tier(query: str, coin: CoinSearchResult) -> Optional[int]:
    symbol = coin.symbol.lower()
    name = coin.name.lower()
    if symbol == query:
        return _EXACT_SYMBOL
    if name == query:
        return _EXACT_NAME
    if symbol.startswith(query) or name.startswith(query):
        return _PREFIX
    if query in symbol or query in name:
        return _SUBSTRING
    return None


def _consume_task_result(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()


def rank_coins(query: str, catalog: Sequence[CoinSearchResult], limit: Optional[int] = None) -> List[CoinSearchResult]:
    """Filter ``catalog`` to coins matching ``query`` and order them by match quality."""
    query = (query or "").strip().lower()
    if not query:
        return []

    scored = []
    for position, coin in enumerate(catalog):
        tier = _match_tier(query, coin)
        if tier is not None:
            scored.append((tier, position, coin))

    scored.sort(key=lambda item: (item[0], item[1]))
    ranked = [coin for _, _, coin in scored]
    return ranked[:limit] if limit is not None else ranked


class CoinSearch:
    """
    Search over a locally held catalog snapshot.

    The snapshot comes from ``provider.list_coins()`` and is refreshed once it
    is older than ``refresh_seconds``. A stale snapshot is kept when a refresh
    fails; with no snapshot at all the provider's own search is used.
    """

    def __init__(
        self,
        provider: Any,
        refresh_seconds: float = 3600.0,
        max_results: int = 25,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.provider = provider
        self.refresh_seconds = refresh_seconds
        self.max_results = max_results
        self._clock = clock or time.monotonic

        self._catalog: Optional[List[CoinSearchResult]] = None
        self._loaded_at: Optional[float] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def catalog_size(self) -> int:
        return len(self._catalog) if self._catalog is not None else 0

    def _snapshot_is_fresh(self) -> bool:
        return self._loaded_at is not None and self._clock() - self._loaded_at < self.refresh_seconds

    async def refresh(self) -> List[CoinSearchResult]:
        """Reload the catalog; concurrent callers share one provider call."""
        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._load_catalog())
            self._refresh_task.add_done_callback(_consume_task_result)
        return await asyncio.shield(self._refresh_task)

    async def _load_catalog(self) -> List[CoinSearchResult]:
        try:
            catalog = await self.provider.list_coins()
            self._catalog = list(catalog)
            self._loaded_at = self._clock()
            logger.info(f"Coin catalog refreshed ({len(self._catalog)} coins)")
            return self._catalog
        finally:
            self._refresh_task = None

    async def _get_catalog(self) -> Optional[List[CoinSearchResult]]:
        if self._catalog is not None and self._snapshot_is_fresh():
            return self._catalog

        try:
            return await self.refresh()
        except PricingError as e:
            if self._catalog is not None:
                logger.warning(f"Catalog refresh failed, using stale snapshot: {e.message}")
                return self._catalog
            logger.warning(f"Catalog unavailable, falling back to provider search: {e.message}")
            return None

    async def search(self, query: str, limit: Optional[int] = None) -> List[CoinSearchResult]:
        """Ranked matches for ``query``; blank queries return an empty list."""
        if query is not None and not isinstance(query, str):
            raise InvalidInputError("query must be a string", field="query", value=query)
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 1):
            raise InvalidInputError("limit must be a positive integer", field="limit", value=limit)
        limit = min(limit or self.max_results, self.max_results)

        if not (query or "").strip():
            return []

        catalog = await self._get_catalog()
        if catalog is None:
            catalog = await self.provider.search(query)

        results = rank_coins(query, catalog, limit)
        logger.debug(f"Search '{query}' matched {len(results)} coins")
        return results
