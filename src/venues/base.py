"""Base classes and helpers shared by venue adapters."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from common.models import REFERENCE_QUOTE, GroupKey, Instrument, Quote

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

# Endpoints that return every contract at once are reused across one scan.
SHARED_PAYLOAD_SECONDS = 5.0

# Anything a flaky endpoint or an unexpected payload shape can raise.
RECOVERABLE_ERRORS: tuple[type[BaseException], ...] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ValueError,
    TypeError,
    KeyError,
    AttributeError,
    IndexError,
    ArithmeticError,
)


def base_from_usdt_symbol(symbol: Optional[str]) -> Optional[str]:
    """Return the upper-cased text before the first ``USDT`` in ``symbol``.

    Deriving the base strictly from the contract symbol keeps look-alike
    tickers apart (``ZKUSDT`` vs ``ZKJUSDT``).
    """

    if not symbol:
        return None
    upper = symbol.upper()
    index = upper.find(REFERENCE_QUOTE)
    if index <= 0:
        return None
    return upper[:index]


def safe_decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def safe_float(value: object) -> float | None:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def first_item(value: object) -> Any:
    """Return ``value[0]`` for non-empty lists, ``value`` itself for dicts."""

    if isinstance(value, list):
        return value[0] if value else None
    return value


class VenueAdapter(ABC):
    """Capability interface every venue implements.

    ``discover`` and ``fetch_quote`` never raise for transport or payload
    problems: a venue that is down simply contributes nothing.
    """

    name: str = ""
    BASE_URL: str = ""
    discovers: bool = True

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        shared_payload_seconds: float = SHARED_PAYLOAD_SECONDS,
    ) -> None:
        self._session = session
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._shared_seconds = shared_payload_seconds
        self._shared_cache: dict[str, tuple[float, Any]] = {}
        self._shared_locks: dict[str, asyncio.Lock] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, base_url={self.base_url!r})"

    async def discover(self) -> list[Instrument]:
        """Return every USDT perpetual listed on the venue."""

        try:
            instruments = await self._discover()
        except asyncio.CancelledError:
            raise
        except RECOVERABLE_ERRORS as exc:
            logger.debug("%s discovery failed: %r", self.name, exc)
            return []
        logger.debug("%s discovered %d instruments", self.name, len(instruments))
        return instruments

    async def fetch_quote(self, native_symbol: str) -> Quote | None:
        """Fetch the current price (and funding when available) for one contract."""

        try:
            return await self._fetch_quote(native_symbol)
        except asyncio.CancelledError:
            raise
        except RECOVERABLE_ERRORS as exc:
            logger.debug("%s quote for %s failed: %r", self.name, native_symbol, exc)
            return None

    @abstractmethod
    def trade_url(self, canonical: str) -> str:
        """Return the venue's contract page for a canonical ticker like ``BTCUSDT``."""

    @abstractmethod
    async def _discover(self) -> list[Instrument]:
        """Venue specific discovery; may raise any recoverable error."""

    @abstractmethod
    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        """Venue specific quote fetch; may raise any recoverable error."""

    def _instrument(
        self, native_symbol: str, base: str, long_name: str | None = None
    ) -> Instrument:
        return Instrument(
            venue=self.name,
            native_symbol=native_symbol,
            base=base.upper(),
            quote=REFERENCE_QUOTE,
            long_name=long_name,
        )

    def _quote(
        self, native_symbol: str, price: object, funding_rate: float | None = None
    ) -> Quote | None:
        value = safe_decimal(price)
        if value is None:
            return None
        return Quote(
            venue=self.name,
            native_symbol=native_symbol,
            price=value,
            funding_rate=funding_rate,
        )

    async def _best_effort(self, awaitable: Awaitable[float | None]) -> float | None:
        """Await a funding lookup, treating any failure as "no funding rate"."""

        try:
            return await awaitable
        except asyncio.CancelledError:
            raise
        except RECOVERABLE_ERRORS as exc:
            logger.debug("%s funding lookup failed: %r", self.name, exc)
            return None

    async def _shared(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """Return a recent payload for ``key``, fetching it at most once per window.

        Concurrent callers wait on the same request instead of each issuing
        their own. Absent payloads are not cached.
        """

        cached = self._fresh(key)
        if cached is not None:
            return cached
        lock = self._shared_locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self._fresh(key)
            if cached is not None:
                return cached
            payload = await fetch()
            if payload is not None:
                self._shared_cache[key] = (time.monotonic(), payload)
            return payload

    def _fresh(self, key: str) -> Any:
        entry = self._shared_cache.get(key)
        if entry is None:
            return None
        stored_at, payload = entry
        if time.monotonic() - stored_at >= self._shared_seconds:
            return None
        return payload

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        return await self._request_json("GET", path, params=params)

    async def _post_json(self, path: str, payload: dict[str, Any]) -> Any:
        return await self._request_json("POST", path, json=payload)

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Perform one HTTP call and decode the JSON body.

        Returns ``None`` for non-2xx responses and empty or non-JSON bodies;
        transport errors propagate to the public wrappers.
        """

        url = f"{self.base_url}{path}"
        session = self._session or aiohttp.ClientSession()
        try:
            async with session.request(method, url, timeout=self._timeout, **kwargs) as resp:
                if not 200 <= resp.status < 300:
                    logger.debug("%s %s %s -> HTTP %d", self.name, method, url, resp.status)
                    return None
                text = await resp.text()
        finally:
            if self._session is None:
                await session.close()

        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            logger.debug("Non JSON %s payload from %s", self.name, url)
            return None


class DerivedVenueAdapter(VenueAdapter):
    """Venue without a usable discovery feed.

    Its instruments are synthesized from group keys other venues already
    produced, so it can only ever join existing groups.
    """

    discovers = False

    async def _discover(self) -> list[Instrument]:
        return []

    @abstractmethod
    def native_symbol_for(self, base: str) -> str:
        """Spell ``base`` the way the venue names its USDT perpetual."""

    def instrument_for(self, key: GroupKey) -> Instrument:
        base = key.base
        return self._instrument(self.native_symbol_for(base), base, key.long_name)


class PlaceholderVenueAdapter(DerivedVenueAdapter):
    """Linked venue whose price endpoint is not wired up yet."""

    async def _fetch_quote(self, native_symbol: str) -> Quote | None:
        return None


__all__ = [
    "DEFAULT_TIMEOUT",
    "DerivedVenueAdapter",
    "PlaceholderVenueAdapter",
    "RECOVERABLE_ERRORS",
    "SHARED_PAYLOAD_SECONDS",
    "VenueAdapter",
    "base_from_usdt_symbol",
    "first_item",
    "safe_decimal",
    "safe_float",
]
