"""Hyperliquid perpetual DEX adapter."""

from __future__ import annotations

from typing import Any

import aiohttp

from common.models import Instrument, Quote

from .base import DEFAULT_TIMEOUT, SHARED_PAYLOAD_SECONDS, VenueAdapter, safe_float


def _coin_name(entry: object) -> str | None:
    if isinstance(entry, dict):
        name = entry.get("name")
        return str(name) if name else None
    if isinstance(entry, str) and entry:
        return entry
    return None


class HyperliquidPerpAdapter(VenueAdapter):
    """Discover coins via ``meta`` and price them from ``allMids``."""

    name = "Hyperliquid"
    BASE_URL = "https://api.hyperliquid.xyz"

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        shared_payload_seconds: float = SHARED_PAYLOAD_SECONDS,
    ) -> None:
        super().__init__(
            session,
            base_url=base_url,
            timeout=timeout,
            shared_payload_seconds=shared_payload_seconds,
        )
        self._coin_index: dict[str, int] = {}

    def trade_url(self, canonical: str) -> str:
        return f"https://app.hyperliquid.xyz/trade/{canonical.replace('USDT', '')}"

    async def _discover(self) -> list[Instrument]:
        payload = await self._post_json("/info", {"type": "meta"})
        if not isinstance(payload, dict):
            return []
        universe = payload.get("universe")
        if not isinstance(universe, list):
            return []

        index: dict[str, int] = {}
        instruments: list[Instrument] = []
        for position, entry in enumerate(universe):
            coin = _coin_name(entry)
            if coin is None:
                continue
            index[coin] = position
            if isinstance(entry, dict) and entry.get("isDelisted"):
                continue
            instruments.append(self._instrument(coin, coin))
        self._coin_index = index
        return instruments

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        if not self._coin_index:
            await self._discover()

        mids = await self._info("allMids")
        price = self._mid_price(mids, native_symbol)
        if price is None:
            return None
        funding = await self._best_effort(self._funding_rate(native_symbol))
        return self._quote(native_symbol, price, funding)

    def _mid_price(self, mids: Any, coin: str) -> Any:
        if not isinstance(mids, dict):
            return None
        if coin in mids:
            return mids[coin]
        # Older payloads carried mids as a list aligned with the meta universe.
        legacy = mids.get("universeMids")
        position = self._coin_index.get(coin)
        if isinstance(legacy, list) and position is not None and position < len(legacy):
            return legacy[position]
        return None

    async def _funding_rate(self, coin: str) -> float | None:
        payload = await self._info("metaAndAssetCtxs")
        if not isinstance(payload, list) or len(payload) < 2:
            return None
        meta, contexts = payload[0], payload[1]
        if not isinstance(meta, dict) or not isinstance(contexts, list):
            return None
        for position, entry in enumerate(meta.get("universe") or []):
            if _coin_name(entry) != coin:
                continue
            context = contexts[position] if position < len(contexts) else None
            if isinstance(context, dict):
                return safe_float(context.get("funding"))
            return None
        return None

    async def _info(self, request_type: str) -> Any:
        return await self._shared(
            request_type, lambda: self._post_json("/info", {"type": request_type})
        )


__all__ = ["HyperliquidPerpAdapter"]
