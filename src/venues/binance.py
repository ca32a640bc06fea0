"""Binance USDT-m perpetual futures adapter."""

from __future__ import annotations

import logging

from common.models import Instrument, Quote

from .base import VenueAdapter, safe_float

logger = logging.getLogger(__name__)


class BinanceFuturesAdapter(VenueAdapter):
    """Discover and quote Binance USDT-margined perpetuals."""

    name = "Binance"
    BASE_URL = "https://fapi.binance.com"

    def trade_url(self, canonical: str) -> str:
        return f"https://www.binance.com/en/futures/{canonical}"

    async def _discover(self) -> list[Instrument]:
        payload = await self._get_json("/fapi/v1/exchangeInfo")
        if not isinstance(payload, dict):
            return []

        instruments: list[Instrument] = []
        for item in payload.get("symbols") or []:
            if not isinstance(item, dict):
                continue
            if str(item.get("contractType", "")).upper() != "PERPETUAL":
                continue
            if str(item.get("quoteAsset", "")).upper() != "USDT":
                continue
            symbol = item.get("symbol")
            base = item.get("baseAsset")
            if not symbol or not base:
                continue
            instruments.append(self._instrument(symbol, base))
        return instruments

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        payload = await self._get_json("/fapi/v1/ticker/price", params={"symbol": native_symbol})
        if not isinstance(payload, dict):
            return None
        funding = await self._best_effort(self._funding_rate(native_symbol))
        return self._quote(native_symbol, payload.get("price"), funding)

    async def _funding_rate(self, native_symbol: str) -> float | None:
        payload = await self._get_json("/fapi/v1/premiumIndex", params={"symbol": native_symbol})
        if not isinstance(payload, dict):
            return None
        return safe_float(payload.get("lastFundingRate"))


__all__ = ["BinanceFuturesAdapter"]
