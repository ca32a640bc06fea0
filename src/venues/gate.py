"""Gate USDT perpetual futures adapter."""

from __future__ import annotations

from common.models import Instrument, Quote

from .base import VenueAdapter, base_from_usdt_symbol, first_item, safe_float


class GateFuturesAdapter(VenueAdapter):
    """Discover and quote Gate USDT-settled perpetuals (``ZK_USDT``)."""

    name = "Gate"
    BASE_URL = "https://api.gateio.ws"

    def trade_url(self, canonical: str) -> str:
        return f"https://www.gate.io/futures_trade/USDT/{canonical}"

    async def _discover(self) -> list[Instrument]:
        payload = await self._get_json("/api/v4/futures/usdt/contracts")
        if not isinstance(payload, list):
            return []

        instruments: list[Instrument] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            contract_type = item.get("type")
            if contract_type and str(contract_type).lower() != "perpetual":
                continue
            name = item.get("name")
            if not name:
                continue
            base = base_from_usdt_symbol(str(name).replace("_", ""))
            if base is None:
                continue
            instruments.append(self._instrument(name, base))
        return instruments

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        payload = await self._get_json(
            "/api/v4/futures/usdt/tickers", params={"contract": native_symbol}
        )
        ticker = first_item(payload)
        if not isinstance(ticker, dict):
            return None
        return self._quote(
            native_symbol, ticker.get("last"), safe_float(ticker.get("funding_rate"))
        )


__all__ = ["GateFuturesAdapter"]
