"""Tests for cross-venue instrument grouping and refresh behaviour."""

from __future__ import annotations

import asyncio

import aiohttp
import pytest

pytest.importorskip("pydantic")

from common.models import GroupKey, Instrument, Quote
from spread.registry import InstrumentRegistry, parse_aliases
from venues.base import DerivedVenueAdapter, VenueAdapter


class FakeAdapter(VenueAdapter):
    def __init__(self, name: str, listings, *, fail: bool = False) -> None:
        super().__init__()
        self.name = name
        self.listings = listings
        self.fail = fail
        self.discover_calls = 0

    def trade_url(self, canonical: str) -> str:
        return f"https://{self.name.lower()}.test/{canonical}"

    async def _discover(self) -> list[Instrument]:
        self.discover_calls += 1
        if self.fail:
            raise aiohttp.ClientError("venue down")
        return [self._instrument(symbol, base, long_name) for symbol, base, long_name in self.listings]

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        return None


class FakeDerived(DerivedVenueAdapter):
    name = "Derived"

    def native_symbol_for(self, base: str) -> str:
        return f"{base}-USDT"

    def trade_url(self, canonical: str) -> str:
        return f"https://derived.test/{canonical}"

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        return None


class ExplodingAdapter(FakeAdapter):
    async def discover(self) -> list[Instrument]:
        raise RuntimeError("bug in adapter")


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _registry(*adapters, **kwargs) -> InstrumentRegistry:
    return InstrumentRegistry({adapter.name: adapter for adapter in adapters}, **kwargs)


def test_same_ticker_on_two_venues_shares_a_group() -> None:
    binance = FakeAdapter("Binance", [("BTCUSDT", "BTC", None), ("ETHUSDT", "ETH", None)])
    bybit = FakeAdapter("Bybit", [("BTCUSDT", "btc", None)])
    registry = _registry(binance, bybit)

    snapshot = asyncio.run(registry.refresh())

    btc = snapshot.groups[GroupKey("BTCUSDT", "BTC")]
    assert set(btc) == {"Binance", "Bybit"}
    assert btc["Bybit"].base == "BTC"
    assert btc["Bybit"].quote == "USDT"
    assert [key for key, _ in snapshot.comparable()] == [GroupKey("BTCUSDT", "BTC")]
    assert GroupKey("ETHUSDT", "ETH") in snapshot.groups


def test_group_members_share_ticker_and_long_name() -> None:
    gate = FakeAdapter("Gate", [("ABC_USDT", "ABC", "Alpha-Beta Coin")])
    mexc = FakeAdapter("MEXC", [("ABC_USDT", "ABC", "alpha beta coin")])
    registry = _registry(gate, mexc)

    snapshot = asyncio.run(registry.refresh())

    assert list(snapshot.groups) == [GroupKey("ABCUSDT", "ALPHABETACOIN")]
    for instrument in snapshot.groups[GroupKey("ABCUSDT", "ALPHABETACOIN")].values():
        assert instrument.long_name == "ALPHABETACOIN"


def test_default_alias_keeps_velodrome_apart() -> None:
    bitget = FakeAdapter("Bitget", [("VELOUSDT_UMCBL", "VELO", None)])
    gate = FakeAdapter("Gate", [("VELO_USDT", "VELO", "Velodrome")])
    binance = FakeAdapter("Binance", [("VELOUSDT", "VELO", None)])
    registry = _registry(bitget, gate, binance)

    snapshot = asyncio.run(registry.refresh())

    velodrome = snapshot.groups[GroupKey("VELOUSDT", "VELODROME")]
    assert set(velodrome) == {"Bitget", "Gate"}
    assert set(snapshot.groups[GroupKey("VELOUSDT", "VELO")]) == {"Binance"}


def test_configured_alias_is_applied() -> None:
    venue = FakeAdapter("V", [("VELO-PERP", "VELO", None)])
    other = FakeAdapter("Other", [("VELOUSDT", "VELO", "Velodrome")])
    registry = _registry(venue, other, aliases=parse_aliases({"V:VELO": "Velodrome"}))

    snapshot = asyncio.run(registry.refresh())

    assert set(snapshot.groups[GroupKey("VELOUSDT", "VELODROME")]) == {"V", "Other"}


def test_derived_venue_only_joins_existing_groups() -> None:
    binance = FakeAdapter("Binance", [("BTCUSDT", "BTC", None)])
    derived = FakeDerived()
    registry = _registry(binance, derived)

    snapshot = asyncio.run(registry.refresh())

    assert len(snapshot) == 1
    synthesized = snapshot.groups[GroupKey("BTCUSDT", "BTC")]["Derived"]
    assert synthesized.native_symbol == "BTC-USDT"
    assert synthesized.long_name == "BTC"


def test_derived_venue_alone_creates_nothing() -> None:
    registry = _registry(FakeDerived())

    snapshot = asyncio.run(registry.refresh())

    assert len(snapshot) == 0


def test_current_reuses_snapshot_inside_refresh_window() -> None:
    async def _run() -> None:
        clock = FakeClock()
        binance = FakeAdapter("Binance", [("BTCUSDT", "BTC", None)])
        registry = _registry(binance, refresh_interval=600.0, clock=clock)

        first = await registry.current()
        clock.now += 599.0
        second = await registry.current()
        assert first is second
        assert binance.discover_calls == 1

        clock.now += 1.0
        third = await registry.current()
        assert third is not first
        assert binance.discover_calls == 2

    asyncio.run(_run())


def test_empty_snapshot_is_rebuilt_on_every_call() -> None:
    async def _run() -> None:
        clock = FakeClock()
        down = FakeAdapter("Binance", [("BTCUSDT", "BTC", None)], fail=True)
        registry = _registry(down, clock=clock)

        await registry.current()
        await registry.current()
        assert down.discover_calls == 2
        assert len(registry.snapshot) == 0

    asyncio.run(_run())


def test_snapshot_is_read_only() -> None:
    binance = FakeAdapter("Binance", [("BTCUSDT", "BTC", None)])
    registry = _registry(binance)

    snapshot = asyncio.run(registry.refresh())

    with pytest.raises(TypeError):
        snapshot.groups[GroupKey("ETHUSDT", "ETH")] = {}  # type: ignore[index]
    with pytest.raises(TypeError):
        snapshot.groups[GroupKey("BTCUSDT", "BTC")]["Bybit"] = None  # type: ignore[index]


def test_failing_venues_do_not_block_refresh() -> None:
    binance = FakeAdapter("Binance", [("BTCUSDT", "BTC", None)])
    bybit = FakeAdapter("Bybit", [("BTCUSDT", "BTC", None)])
    down = FakeAdapter("Gate", [("BTC_USDT", "BTC", None)], fail=True)
    broken = ExplodingAdapter("MEXC", [("BTC_USDT", "BTC", None)])
    registry = _registry(binance, bybit, down, broken)

    snapshot = asyncio.run(registry.refresh())

    assert set(snapshot.groups[GroupKey("BTCUSDT", "BTC")]) == {"Binance", "Bybit"}


def test_parse_aliases_skips_malformed_entries() -> None:
    aliases = parse_aliases({"bitget:velo": "Velodrome", "NOCOLON": "X", "GATE:": "Y", "MEXC:ABC": ""})
    assert aliases == {("BITGET", "VELO"): "Velodrome"}
    assert parse_aliases(None) == {}
