"""HTX (formerly Huobi) USDT-margined swap adapter (symbols derived)."""

from __future__ import annotations

from common.models import Quote

from .base import DerivedVenueAdapter, first_item, safe_float


class HtxLinearSwapAdapter(DerivedVenueAdapter):
    """Quote HTX linear swaps spelled ``BASE-USDT``."""

    name = "HTX"
    BASE_URL = "https://api.hbdm.com"

    def native_symbol_for(self, base: str) -> str:
        return f"{base.upper()}-USDT"

    def trade_url(self, canonical: str) -> str:
        return f"https://futures.htx.com/en-us/usdt_swap/exchange/{canonical.lower()}"

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        payload = await self._get_json(
            "/linear-swap-ex/market/detail/merged", params={"contract_code": native_symbol}
        )
        if not isinstance(payload, dict):
            return None
        tick = payload.get("tick")
        if not isinstance(tick, dict):
            return None
        funding = await self._best_effort(self._funding_rate(native_symbol))
        return self._quote(native_symbol, tick.get("close"), funding)

    async def _funding_rate(self, native_symbol: str) -> float | None:
        payload = await self._get_json(
            "/linear-swap-api/v1/swap_funding_rate", params={"contract_code": native_symbol}
        )
        if not isinstance(payload, dict):
            return None
        data = first_item(payload.get("data"))
        if not isinstance(data, dict):
            return None
        return safe_float(data.get("funding_rate"))


__all__ = ["HtxLinearSwapAdapter"]
