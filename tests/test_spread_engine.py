"""Tests for spread calculation, ranking and scanning."""

from __future__ import annotations

import asyncio
from decimal import Decimal

import aiohttp
import pytest

pytest.importorskip("pydantic")

from common.models import GroupKey, Instrument, Quote
from spread import InstrumentRegistry, SpreadEngine, build_spread, rank_spreads
from venues.base import VenueAdapter


class PricedAdapter(VenueAdapter):
    def __init__(self, name: str, prices: dict[str, str], *, fail: bool = False) -> None:
        super().__init__()
        self.name = name
        self.prices = prices
        self.fail = fail
        self.discover_calls = 0

    def trade_url(self, canonical: str) -> str:
        return f"https://{self.name.lower()}.test/{canonical}"

    async def _discover(self) -> list[Instrument]:
        self.discover_calls += 1
        return [self._instrument(symbol, symbol.replace("USDT", "")) for symbol in self.prices]

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        if self.fail:
            raise aiohttp.ClientError("down")
        return self._quote(native_symbol, self.prices.get(native_symbol), 0.0001)


class RaisingAdapter(PricedAdapter):
    async def fetch_quote(self, native_symbol: str) -> Quote | None:
        raise RuntimeError("unexpected")


def quote(venue: str, price: str, symbol: str = "BTCUSDT") -> Quote:
    return Quote(venue=venue, native_symbol=symbol, price=Decimal(price))


def _engine(*adapters: VenueAdapter) -> SpreadEngine:
    return SpreadEngine(InstrumentRegistry({adapter.name: adapter for adapter in adapters}))


def test_spread_percent_is_relative_to_min_price() -> None:
    spread = build_spread(
        GroupKey("BTCUSDT", "BTC"), [quote("A", "105.00"), quote("B", "100.00")]
    )
    assert spread is not None
    assert spread.max_quote.venue == "A"
    assert spread.min_quote.venue == "B"
    assert spread.spread_percent == 5.0
    assert spread.base == "BTC"


def test_zero_min_price_gives_zero_spread() -> None:
    spread = build_spread(GroupKey("BTCUSDT", "BTC"), [quote("A", "3"), quote("B", "0")])
    assert spread is not None
    assert spread.spread_percent == 0.0


def test_fewer_than_two_quotes_is_not_a_spread() -> None:
    key = GroupKey("BTCUSDT", "BTC")
    assert build_spread(key, [quote("A", "1"), None]) is None
    assert build_spread(key, []) is None


def test_rank_orders_widest_first_and_breaks_ties_by_ticker() -> None:
    wide = build_spread(GroupKey("ZZZUSDT", "ZZZ"), [quote("A", "120"), quote("B", "100")])
    tie_b = build_spread(GroupKey("BBBUSDT", "BBB"), [quote("A", "101"), quote("B", "100")])
    tie_a = build_spread(GroupKey("AAAUSDT", "AAA"), [quote("A", "101"), quote("B", "100")])

    ranked = rank_spreads([tie_b, wide, tie_a])

    assert [spread.ticker for spread in ranked] == ["ZZZUSDT", "AAAUSDT", "BBBUSDT"]


@pytest.mark.asyncio
async def test_scan_all_compares_groups_listed_on_two_venues() -> None:
    engine = _engine(
        PricedAdapter("Binance", {"BTCUSDT": "100", "ETHUSDT": "10"}),
        PricedAdapter("Bybit", {"BTCUSDT": "105"}),
    )

    spreads = await engine.scan_all()

    assert len(spreads) == 1
    spread = spreads[0]
    assert spread.ticker == "BTCUSDT"
    assert spread.max_quote.venue == "Bybit"
    assert spread.max_quote.price >= spread.min_quote.price
    assert spread.spread_percent == 5.0
    assert spread.max_quote.funding_rate == 0.0001


@pytest.mark.asyncio
async def test_scan_all_survives_failing_venues() -> None:
    engine = _engine(
        PricedAdapter("Binance", {"BTCUSDT": "100", "ETHUSDT": "10"}),
        PricedAdapter("Bybit", {"BTCUSDT": "105", "ETHUSDT": "11"}, fail=True),
        RaisingAdapter("Gate", {"BTCUSDT": "103"}),
        PricedAdapter("MEXC", {"ETHUSDT": "12"}),
    )

    spreads = await engine.scan_all()

    assert [spread.ticker for spread in spreads] == ["ETHUSDT"]
    assert all(len(spread.quotes) >= 2 for spread in spreads)


@pytest.mark.asyncio
async def test_unparsable_prices_are_skipped() -> None:
    engine = _engine(
        PricedAdapter("Binance", {"BTCUSDT": "100"}),
        PricedAdapter("Bybit", {"BTCUSDT": "not-a-number"}),
    )

    assert await engine.scan_all() == []


@pytest.mark.asyncio
async def test_top_limits_ranked_output() -> None:
    engine = _engine(
        PricedAdapter("Binance", {"BTCUSDT": "100", "ETHUSDT": "10", "SOLUSDT": "1"}),
        PricedAdapter("Bybit", {"BTCUSDT": "101", "ETHUSDT": "12", "SOLUSDT": "1.05"}),
    )

    top = await engine.top(2)

    assert [spread.ticker for spread in top] == ["ETHUSDT", "SOLUSDT"]
    assert await engine.top(0) == []


def test_link_for_delegates_to_adapter() -> None:
    engine = _engine(PricedAdapter("Binance", {}))
    assert engine.link_for("Binance", "BTCUSDT") == "https://binance.test/BTCUSDT"
    assert engine.link_for("Nowhere", "BTCUSDT") == "#"


def test_scan_all_without_venues_is_empty() -> None:
    engine = SpreadEngine(InstrumentRegistry({}))
    assert asyncio.run(engine.scan_all()) == []


@pytest.mark.asyncio
async def test_scans_inside_refresh_window_reuse_discovery() -> None:
    now = [0.0]
    binance = PricedAdapter("Binance", {"BTCUSDT": "100"})
    bybit = PricedAdapter("Bybit", {"BTCUSDT": "101"})
    registry = InstrumentRegistry(
        {"Binance": binance, "Bybit": bybit}, refresh_interval=600.0, clock=lambda: now[0]
    )
    engine = SpreadEngine(registry)

    await engine.scan_all()
    now[0] = 300.0
    spreads = await engine.scan_all()

    assert len(spreads) == 1
    assert (binance.discover_calls, bybit.discover_calls) == (1, 1)

    now[0] = 600.0
    await engine.scan_all()

    assert (binance.discover_calls, bybit.discover_calls) == (2, 2)
