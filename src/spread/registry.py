"""Cross-venue instrument registry with periodic, non-blocking refresh."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterator, Mapping

from common.models import REFERENCE_QUOTE, GroupKey, Instrument, canonical_ticker, normalise_long_name
from venues.base import DerivedVenueAdapter, VenueAdapter

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SECONDS = 10 * 60.0

# Same short ticker, different asset: (VENUE, BASE) -> real long name.
DEFAULT_ALIASES: Mapping[tuple[str, str], str] = MappingProxyType(
    {
        ("BITGET", "VELO"): "VELODROME",
    }
)


def parse_aliases(raw: Mapping[str, object] | None) -> dict[tuple[str, str], str]:
    """Parse ``{"VENUE:BASE": "LONG NAME"}`` config entries into alias keys."""

    aliases: dict[tuple[str, str], str] = {}
    for key, value in (raw or {}).items():
        venue, sep, base = str(key).partition(":")
        if not sep or not venue.strip() or not base.strip() or not value:
            logger.warning("Ignoring malformed alias entry %r -> %r", key, value)
            continue
        aliases[(venue.strip().upper(), base.strip().upper())] = str(value)
    return aliases


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable ``GroupKey -> venue -> Instrument`` mapping."""

    groups: Mapping[GroupKey, Mapping[str, Instrument]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    created_at: float | None = None

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[GroupKey]:
        return iter(self.groups)

    def comparable(self) -> Iterator[tuple[GroupKey, Mapping[str, Instrument]]]:
        """Yield only groups listed on at least two venues."""

        for key, venues in self.groups.items():
            if len(venues) >= 2:
                yield key, venues


class InstrumentRegistry:
    """Build and cache the cross-venue instrument mapping.

    Readers always get a complete snapshot: a refresh assembles its groups
    privately and publishes them with a single attribute assignment. There is
    no lock; two callers that both find the snapshot stale each build one and
    the last to finish wins.
    """

    def __init__(
        self,
        adapters: Mapping[str, VenueAdapter],
        *,
        aliases: Mapping[tuple[str, str], str] | None = None,
        refresh_interval: float = DEFAULT_REFRESH_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._adapters = MappingProxyType(dict(adapters))
        merged = dict(DEFAULT_ALIASES)
        for (venue, base), long_name in (aliases or {}).items():
            merged[(venue.upper(), base.upper())] = long_name
        self._aliases = MappingProxyType(merged)
        self.refresh_interval = refresh_interval
        self._clock = clock
        self._snapshot = RegistrySnapshot()
        self._last_refresh: float | None = None

    @property
    def adapters(self) -> Mapping[str, VenueAdapter]:
        return self._adapters

    @property
    def snapshot(self) -> RegistrySnapshot:
        """Last published snapshot, without triggering a refresh."""

        return self._snapshot

    def is_stale(self) -> bool:
        if self._last_refresh is None or not self._snapshot.groups:
            return True
        return self._clock() - self._last_refresh >= self.refresh_interval

    async def current(self) -> RegistrySnapshot:
        """Return the snapshot, refreshing it first when it has expired."""

        if not self.is_stale():
            return self._snapshot
        return await self.refresh()

    async def refresh(self) -> RegistrySnapshot:
        """Rediscover every venue and publish a new snapshot."""

        started = self._clock()
        discovering = [adapter for adapter in self._adapters.values() if adapter.discovers]
        results = await asyncio.gather(
            *(adapter.discover() for adapter in discovering), return_exceptions=True
        )

        groups: dict[GroupKey, dict[str, Instrument]] = {}
        for adapter, result in zip(discovering, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning("%s discovery raised %r; skipping venue", adapter.name, result)
                continue
            for instrument in result:
                key = self.group_key(instrument)
                groups.setdefault(key, {})[instrument.venue] = self._filed(instrument, key)

        for adapter in self._adapters.values():
            if not isinstance(adapter, DerivedVenueAdapter):
                continue
            for key, venues in groups.items():
                if adapter.name not in venues:
                    venues[adapter.name] = adapter.instrument_for(key)

        snapshot = RegistrySnapshot(
            groups=MappingProxyType(
                {key: MappingProxyType(venues) for key, venues in groups.items()}
            ),
            created_at=time.time(),
        )
        self._snapshot = snapshot
        self._last_refresh = started
        logger.info(
            "Instrument registry refreshed: %d groups, %d comparable",
            len(snapshot),
            sum(1 for _ in snapshot.comparable()),
        )
        return snapshot

    def group_key(self, instrument: Instrument) -> GroupKey:
        """Compute the asset identity an instrument is filed under."""

        alias = self._aliases.get((instrument.venue.upper(), instrument.base.upper()))
        long_name = normalise_long_name(alias or instrument.long_name, instrument.base)
        return GroupKey(canonical_ticker(instrument.base), long_name)

    @staticmethod
    def _filed(instrument: Instrument, key: GroupKey) -> Instrument:
        return instrument.model_copy(update={"quote": REFERENCE_QUOTE, "long_name": key.long_name})


__all__ = [
    "DEFAULT_ALIASES",
    "DEFAULT_REFRESH_SECONDS",
    "InstrumentRegistry",
    "RegistrySnapshot",
    "parse_aliases",
]
