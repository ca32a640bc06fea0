"""KuCoin futures adapter."""

from __future__ import annotations

from urllib.parse import quote as urlquote

from common.models import Instrument, Quote

from .base import VenueAdapter, safe_float


def _normalise_base(currency: str) -> str:
    # KuCoin still spells bitcoin XBT.
    return currency.upper().replace("XBT", "BTC")


class KuCoinFuturesAdapter(VenueAdapter):
    """Discover and quote KuCoin USDT-margined perpetuals (symbols end with ``M``)."""

    name = "KuCoin"
    BASE_URL = "https://api-futures.kucoin.com"

    def trade_url(self, canonical: str) -> str:
        return f"https://futures.kucoin.com/trade/{canonical}"

    async def _discover(self) -> list[Instrument]:
        payload = await self._get_json("/api/v1/contracts/active")
        if not isinstance(payload, dict):
            return []

        instruments: list[Instrument] = []
        for item in payload.get("data") or []:
            if not isinstance(item, dict):
                continue
            if str(item.get("quoteCurrency", "")).upper() != "USDT":
                continue
            if item.get("isInverse"):
                continue
            symbol = item.get("symbol")
            base = item.get("baseCurrency")
            if not symbol or not base:
                continue
            instruments.append(self._instrument(symbol, _normalise_base(base)))
        return instruments

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        payload = await self._get_json(f"/api/v1/contracts/{urlquote(native_symbol, safe='')}")
        if not isinstance(payload, dict):
            return None
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        funding = safe_float(data.get("fundingFeeRate"))
        if funding is None:
            funding = safe_float(data.get("fundingRate"))
        return self._quote(native_symbol, data.get("lastTradePrice"), funding)


__all__ = ["KuCoinFuturesAdapter"]
