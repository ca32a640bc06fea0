"""BingX perpetual swap adapter (symbols derived, not discovered)."""

from __future__ import annotations

from common.models import Quote

from .base import DerivedVenueAdapter, first_item, safe_float


class BingXSwapAdapter(DerivedVenueAdapter):
    """Quote BingX USDT-M perpetual swaps spelled ``BASE-USDT``."""

    name = "BingX"
    BASE_URL = "https://open-api.bingx.com"

    def native_symbol_for(self, base: str) -> str:
        return f"{base.upper()}-USDT"

    def trade_url(self, canonical: str) -> str:
        return f"https://bingx.com/en-us/futures/{canonical.lower()}"

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        payload = await self._get_json(
            "/openApi/swap/v2/quote/price", params={"symbol": native_symbol}
        )
        if not isinstance(payload, dict):
            return None
        data = first_item(payload.get("data"))
        if not isinstance(data, dict):
            return None
        funding = await self._best_effort(self._funding_rate(native_symbol))
        return self._quote(native_symbol, data.get("price"), funding)

    async def _funding_rate(self, native_symbol: str) -> float | None:
        payload = await self._get_json(
            "/openApi/swap/v2/quote/premiumIndex", params={"symbol": native_symbol}
        )
        if not isinstance(payload, dict):
            return None
        data = first_item(payload.get("data"))
        if not isinstance(data, dict):
            return None
        return safe_float(data.get("lastFundingRate"))


__all__ = ["BingXSwapAdapter"]
