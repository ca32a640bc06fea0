"""MEXC contract (perpetual futures) adapter."""

from __future__ import annotations

from urllib.parse import quote as urlquote

from common.models import Instrument, Quote

from .base import VenueAdapter, base_from_usdt_symbol, first_item, safe_float


class MexcContractAdapter(VenueAdapter):
    """Discover and quote MEXC USDT perpetual contracts (``BTC_USDT``)."""

    name = "MEXC"
    BASE_URL = "https://contract.mexc.com"

    def trade_url(self, canonical: str) -> str:
        return f"https://futures.mexc.com/exchange/{canonical}"

    async def _discover(self) -> list[Instrument]:
        payload = await self._get_json("/api/v1/contract/detail")
        if not isinstance(payload, dict):
            return []

        data = payload.get("data")
        if isinstance(data, dict):
            data = [data]
        instruments: list[Instrument] = []
        for item in data or []:
            if not isinstance(item, dict):
                continue
            if str(item.get("quoteCoin") or item.get("quoteCurrency") or "").upper() != "USDT":
                continue
            contract_type = item.get("type")
            if contract_type is not None and str(contract_type).upper() not in {"PERPETUAL", "1"}:
                continue
            symbol = item.get("symbol")
            base = base_from_usdt_symbol(str(symbol or "").replace("_", ""))
            if not symbol or base is None:
                continue
            instruments.append(self._instrument(symbol, base))
        return instruments

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        payload = await self._get_json("/api/v1/contract/ticker", params={"symbol": native_symbol})
        if not isinstance(payload, dict):
            return None
        ticker = first_item(payload.get("data"))
        if not isinstance(ticker, dict):
            return None
        funding = safe_float(ticker.get("fundingRate"))
        if funding is None:
            funding = await self._best_effort(self._funding_rate(native_symbol))
        return self._quote(native_symbol, ticker.get("lastPrice"), funding)

    async def _funding_rate(self, native_symbol: str) -> float | None:
        payload = await self._get_json(
            f"/api/v1/contract/funding_rate/{urlquote(native_symbol, safe='')}"
        )
        if not isinstance(payload, dict):
            return None
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        return safe_float(data.get("fundingRate"))


__all__ = ["MexcContractAdapter"]
