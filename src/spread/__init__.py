"""Instrument identity resolution and cross-venue spread calculation."""

from .engine import Spread, SpreadEngine, build_spread, rank_spreads
from .registry import InstrumentRegistry, RegistrySnapshot, parse_aliases

__all__ = [
    "InstrumentRegistry",
    "RegistrySnapshot",
    "Spread",
    "SpreadEngine",
    "build_spread",
    "parse_aliases",
    "rank_spreads",
]
