"""Venue adapters for centralised exchanges and perpetual DEXes.

Each adapter knows how to list a venue's USDT perpetuals and how to fetch a
quote for one of them. ``build_adapters`` turns the ``venues`` config section
into an ordered ``name -> adapter`` mapping.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import aiohttp

from common.config import as_bool, as_mapping

from .base import (  # noqa: F401
    DEFAULT_TIMEOUT,
    DerivedVenueAdapter,
    PlaceholderVenueAdapter,
    VenueAdapter,
    base_from_usdt_symbol,
)
from .binance import BinanceFuturesAdapter  # noqa: F401
from .bingx import BingXSwapAdapter  # noqa: F401
from .bitget import BitgetFuturesAdapter  # noqa: F401
from .bybit import BybitLinearAdapter  # noqa: F401
from .gate import GateFuturesAdapter  # noqa: F401
from .htx import HtxLinearSwapAdapter  # noqa: F401
from .hyperliquid import HyperliquidPerpAdapter  # noqa: F401
from .kucoin import KuCoinFuturesAdapter  # noqa: F401
from .mexc import MexcContractAdapter  # noqa: F401
from .placeholders import AsterPerpAdapter, LBankFuturesAdapter, LighterPerpAdapter  # noqa: F401
from .xt import XtFuturesAdapter  # noqa: F401

logger = logging.getLogger(__name__)

# Config key -> adapter class. Discovering venues first, derived venues last.
VENUE_CLASSES: dict[str, type[VenueAdapter]] = {
    "binance": BinanceFuturesAdapter,
    "bybit": BybitLinearAdapter,
    "kucoin": KuCoinFuturesAdapter,
    "gate": GateFuturesAdapter,
    "bitget": BitgetFuturesAdapter,
    "mexc": MexcContractAdapter,
    "hyperliquid": HyperliquidPerpAdapter,
    "bingx": BingXSwapAdapter,
    "htx": HtxLinearSwapAdapter,
    "xt": XtFuturesAdapter,
    "lbank": LBankFuturesAdapter,
    "aster": AsterPerpAdapter,
    "lighter": LighterPerpAdapter,
}


def build_adapters(
    venues_config: Mapping[str, Any] | None = None,
    session: aiohttp.ClientSession | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, VenueAdapter]:
    """Instantiate every enabled venue adapter.

    Venues are enabled unless their section sets ``enabled: false``; a
    ``base_url`` entry overrides the public API host.
    """

    venues_config = venues_config or {}
    unknown = sorted(set(venues_config) - set(VENUE_CLASSES))
    if unknown:
        logger.warning("Ignoring unknown venue sections: %s", ", ".join(unknown))

    adapters: dict[str, VenueAdapter] = {}
    for key, adapter_cls in VENUE_CLASSES.items():
        venue_cfg = as_mapping(venues_config.get(key))
        if not as_bool(venue_cfg.get("enabled"), True):
            logger.info("Venue %s disabled in configuration", adapter_cls.name)
            continue
        base_url = venue_cfg.get("base_url")
        adapter = adapter_cls(
            session,
            base_url=str(base_url) if base_url else None,
            timeout=timeout,
        )
        adapters[adapter.name] = adapter
    return adapters


__all__ = [
    "AsterPerpAdapter",
    "BinanceFuturesAdapter",
    "BingXSwapAdapter",
    "BitgetFuturesAdapter",
    "BybitLinearAdapter",
    "DerivedVenueAdapter",
    "GateFuturesAdapter",
    "HtxLinearSwapAdapter",
    "HyperliquidPerpAdapter",
    "KuCoinFuturesAdapter",
    "LBankFuturesAdapter",
    "LighterPerpAdapter",
    "MexcContractAdapter",
    "PlaceholderVenueAdapter",
    "VENUE_CLASSES",
    "VenueAdapter",
    "XtFuturesAdapter",
    "base_from_usdt_symbol",
    "build_adapters",
]
