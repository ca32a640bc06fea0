"""Venues that are linked in messages but have no price feed wired up yet."""

from __future__ import annotations

from .base import PlaceholderVenueAdapter


class LBankFuturesAdapter(PlaceholderVenueAdapter):
    name = "LBank"
    BASE_URL = "https://lbkperp.lbank.com"

    def native_symbol_for(self, base: str) -> str:
        return f"{base.lower()}usdt"

    def trade_url(self, canonical: str) -> str:
        return f"https://www.lbank.com/futures/{canonical.lower()}"


class AsterPerpAdapter(PlaceholderVenueAdapter):
    name = "Aster"
    BASE_URL = "https://fapi.asterdex.com"

    def native_symbol_for(self, base: str) -> str:
        return base.upper()

    def trade_url(self, canonical: str) -> str:
        return "https://app.aster.exchange/"


class LighterPerpAdapter(PlaceholderVenueAdapter):
    name = "Lighter"
    BASE_URL = "https://mainnet.zklighter.elliot.ai"

    def native_symbol_for(self, base: str) -> str:
        return base.upper()

    def trade_url(self, canonical: str) -> str:
        return "https://app.lighter.xyz/"


__all__ = ["AsterPerpAdapter", "LBankFuturesAdapter", "LighterPerpAdapter"]
