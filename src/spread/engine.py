"""Spread calculation engine fanning out quote requests per asset group."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from common.models import REFERENCE_QUOTE, GroupKey, Instrument, Quote
from venues.base import VenueAdapter

from .registry import InstrumentRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_REQUESTS = 32

_HUNDRED = Decimal(100)
_PERCENT_PLACES = Decimal("0.00000001")


@dataclass(frozen=True)
class Spread:
    """Price divergence between venues listing the same asset."""

    ticker: str
    long_name: str
    max_quote: Quote
    min_quote: Quote
    quotes: tuple[Quote, ...]

    @property
    def base(self) -> str:
        if self.ticker.endswith(REFERENCE_QUOTE):
            return self.ticker[: -len(REFERENCE_QUOTE)]
        return self.ticker

    @property
    def spread_percent(self) -> float:
        """``(max - min) / min * 100``; zero when the minimum price is zero."""

        low = self.min_quote.price
        if low == 0:
            return 0.0
        diff = self.max_quote.price - low
        return float((diff * _HUNDRED / low).quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP))


def build_spread(key: GroupKey, quotes: Iterable[Quote | None]) -> Spread | None:
    """Reduce a group's quotes to a Spread, or ``None`` with fewer than two prices."""

    usable = tuple(quote for quote in quotes if quote is not None and quote.price is not None)
    if len(usable) < 2:
        return None
    return Spread(
        ticker=key.ticker,
        long_name=key.long_name,
        max_quote=max(usable, key=lambda quote: quote.price),
        min_quote=min(usable, key=lambda quote: quote.price),
        quotes=usable,
    )


def rank_spreads(spreads: Iterable[Spread]) -> list[Spread]:
    """Sort widest first; ties fall back to ticker order so output is stable."""

    return sorted(spreads, key=lambda spread: (-spread.spread_percent, spread.ticker, spread.long_name))


class SpreadEngine:
    """Compare live quotes within every registry group listed on 2+ venues."""

    def __init__(
        self,
        registry: InstrumentRegistry,
        *,
        max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
    ) -> None:
        self._registry = registry
        self._limit = asyncio.Semaphore(max(1, max_concurrent_requests))

    @property
    def registry(self) -> InstrumentRegistry:
        return self._registry

    async def scan_all(self) -> list[Spread]:
        """Return one Spread per group with at least two usable quotes (unordered)."""

        snapshot = await self._registry.current()
        groups = list(snapshot.comparable())
        results = await asyncio.gather(*(self._scan_group(key, venues) for key, venues in groups))
        spreads = [spread for spread in results if spread is not None]
        logger.debug("Scanned %d groups, %d spreads", len(groups), len(spreads))
        return spreads

    async def top(self, limit: int) -> list[Spread]:
        return rank_spreads(await self.scan_all())[: max(0, limit)]

    def link_for(self, venue: str, canonical: str) -> str:
        adapter = self._registry.adapters.get(venue)
        if adapter is None:
            return "#"
        return adapter.trade_url(canonical)

    async def _scan_group(
        self, key: GroupKey, venues: Mapping[str, Instrument]
    ) -> Spread | None:
        quotes = await asyncio.gather(
            *(self._fetch(venue, instrument) for venue, instrument in venues.items())
        )
        return build_spread(key, quotes)

    async def _fetch(self, venue: str, instrument: Instrument) -> Quote | None:
        adapter = self._registry.adapters.get(venue)
        if adapter is None:
            return None
        async with self._limit:
            return await _guarded_quote(adapter, instrument.native_symbol)


async def _guarded_quote(adapter: VenueAdapter, native_symbol: str) -> Quote | None:
    try:
        return await adapter.fetch_quote(native_symbol)
    except asyncio.CancelledError:
        raise
    except Exception:  # adapters should not raise; a buggy one must not sink the scan
        logger.exception("%s fetch_quote(%s) raised", adapter.name, native_symbol)
        return None


__all__ = [
    "DEFAULT_MAX_CONCURRENT_REQUESTS",
    "Spread",
    "SpreadEngine",
    "build_spread",
    "rank_spreads",
]
