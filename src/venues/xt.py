"""XT futures adapter (symbols derived, priced from the public contracts list)."""

from __future__ import annotations

from typing import Any

from common.models import Quote

from .base import DerivedVenueAdapter, safe_float


def _contract_rows(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        rows = payload.get("result") or payload.get("data")
        if isinstance(rows, list):
            return rows
    return []


class XtFuturesAdapter(DerivedVenueAdapter):
    """Quote XT USDT perpetuals spelled ``base_usdt``."""

    name = "XT"
    BASE_URL = "https://fapi.xt.com"

    def native_symbol_for(self, base: str) -> str:
        return f"{base.lower()}_usdt"

    def trade_url(self, canonical: str) -> str:
        return f"https://www.xt.com/en/futures/trade/{canonical.lower().replace('usdt', '_usdt')}"

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        payload = await self._shared(
            "contracts", lambda: self._get_json("/future/market/v1/public/cg/contracts")
        )
        needle = native_symbol.lower()
        for row in _contract_rows(payload):
            if not isinstance(row, dict):
                continue
            if str(row.get("symbol", "")).lower() != needle:
                continue
            if str(row.get("product_type", "")).upper() != "PERPETUAL":
                continue
            if str(row.get("target_currency", "")).upper() != "USDT":
                continue
            return self._quote(
                native_symbol, row.get("last_price"), safe_float(row.get("funding_rate"))
            )
        return None


__all__ = ["XtFuturesAdapter"]
