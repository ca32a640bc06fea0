"""Shared data models used across the spread tracker."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

REFERENCE_QUOTE = "USDT"

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def normalise_long_name(long_name: Optional[str], base: str) -> str:
    """Upper-case ``long_name`` (or ``base`` when blank) and strip non-alphanumerics."""

    text = long_name if long_name and long_name.strip() else base
    return _NON_ALNUM.sub("", text.upper())


def canonical_ticker(base: str) -> str:
    return f"{base.upper()}{REFERENCE_QUOTE}"


class GroupKey(NamedTuple):
    """Cross-venue asset identity: canonical ticker plus normalised long name."""

    ticker: str
    long_name: str

    @property
    def base(self) -> str:
        if self.ticker.endswith(REFERENCE_QUOTE):
            return self.ticker[: -len(REFERENCE_QUOTE)]
        return self.ticker


class Instrument(BaseModel):
    """One tradable perpetual contract on one venue."""

    model_config = ConfigDict(frozen=True)

    venue: str = Field(..., description="Venue display name, e.g. Binance")
    native_symbol: str = Field(..., description="Venue specific symbol, e.g. BTC_USDT")
    base: str = Field(..., description="Base asset ticker derived from the native symbol")
    quote: str = Field(REFERENCE_QUOTE, description="Quote asset ticker")
    long_name: Optional[str] = Field(
        None, description="Descriptive asset name used to break ticker collisions"
    )


class Quote(BaseModel):
    """Price observation for one instrument at fetch time."""

    model_config = ConfigDict(frozen=True)

    venue: str = Field(..., description="Venue display name")
    native_symbol: str = Field(..., description="Venue specific symbol the price belongs to")
    price: Decimal = Field(..., description="Last/mid price as an exact decimal")
    funding_rate: Optional[float] = Field(
        None, description="Current funding rate as a fraction when the venue exposes it"
    )


__all__ = [
    "GroupKey",
    "Instrument",
    "Quote",
    "REFERENCE_QUOTE",
    "canonical_ticker",
    "normalise_long_name",
]
