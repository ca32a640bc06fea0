"""Common utilities shared across the spread tracker."""

from .config import load_config  # noqa: F401
from .logging import setup_logging  # noqa: F401
from .models import (  # noqa: F401
    REFERENCE_QUOTE,
    GroupKey,
    Instrument,
    Quote,
    canonical_ticker,
    normalise_long_name,
)

__all__ = [
    "GroupKey",
    "Instrument",
    "Quote",
    "REFERENCE_QUOTE",
    "canonical_ticker",
    "load_config",
    "normalise_long_name",
    "setup_logging",
]
