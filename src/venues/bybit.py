"""Bybit linear perpetual adapter."""

from __future__ import annotations

from common.models import Instrument, Quote

from .base import VenueAdapter, first_item, safe_float


def _result_list(payload: object) -> list[object]:
    if not isinstance(payload, dict):
        return []
    result = payload.get("result")
    if not isinstance(result, dict):
        return []
    items = result.get("list")
    return items if isinstance(items, list) else []


class BybitLinearAdapter(VenueAdapter):
    """Discover and quote Bybit USDT-margined linear perpetuals."""

    name = "Bybit"
    BASE_URL = "https://api.bybit.com"

    def trade_url(self, canonical: str) -> str:
        return f"https://www.bybit.com/trade/usdt/{canonical}"

    async def _discover(self) -> list[Instrument]:
        payload = await self._get_json(
            "/v5/market/instruments-info", params={"category": "linear", "limit": "1000"}
        )
        instruments: list[Instrument] = []
        for item in _result_list(payload):
            if not isinstance(item, dict):
                continue
            if str(item.get("quoteCoin", "")).upper() != "USDT":
                continue
            contract_type = item.get("contractType")
            if contract_type and contract_type != "LinearPerpetual":
                continue
            symbol = item.get("symbol")
            base = item.get("baseCoin")
            if not symbol or not base:
                continue
            instruments.append(self._instrument(symbol, base))
        return instruments

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        payload = await self._get_json(
            "/v5/market/tickers", params={"category": "linear", "symbol": native_symbol}
        )
        ticker = first_item(_result_list(payload))
        if not isinstance(ticker, dict):
            return None
        return self._quote(
            native_symbol, ticker.get("lastPrice"), safe_float(ticker.get("fundingRate"))
        )


__all__ = ["BybitLinearAdapter"]
