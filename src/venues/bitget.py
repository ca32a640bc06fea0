"""Bitget USDT-M perpetual adapter."""

from __future__ import annotations

from common.models import Instrument, Quote

from .base import VenueAdapter, base_from_usdt_symbol, safe_float


class BitgetFuturesAdapter(VenueAdapter):
    """Discover and quote Bitget USDT-M perpetuals (``ZKUSDT_UMCBL``)."""

    name = "Bitget"
    BASE_URL = "https://api.bitget.com"

    def trade_url(self, canonical: str) -> str:
        return f"https://www.bitget.com/futures/usdt/{canonical}"

    async def _discover(self) -> list[Instrument]:
        payload = await self._get_json(
            "/api/mix/v1/market/contracts", params={"productType": "umcbl"}
        )
        if not isinstance(payload, dict):
            return []

        instruments: list[Instrument] = []
        for item in payload.get("data") or []:
            if not isinstance(item, dict):
                continue
            symbol = item.get("symbol")
            # baseCoin is unreliable for look-alike tickers (ZK vs ZKJ).
            base = base_from_usdt_symbol(symbol)
            if not symbol or base is None:
                continue
            instruments.append(self._instrument(symbol, base))
        return instruments

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        payload = await self._get_json("/api/mix/v1/market/ticker", params={"symbol": native_symbol})
        if not isinstance(payload, dict):
            return None
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        funding = await self._best_effort(self._funding_rate(native_symbol))
        return self._quote(native_symbol, data.get("last"), funding)

    async def _funding_rate(self, native_symbol: str) -> float | None:
        payload = await self._get_json(
            "/api/mix/v1/market/current-fundRate", params={"symbol": native_symbol}
        )
        if not isinstance(payload, dict):
            return None
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        return safe_float(data.get("fundingRate"))


__all__ = ["BitgetFuturesAdapter"]
