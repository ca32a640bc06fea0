"""Configuration helpers for loading YAML files with environment expansion."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml


def load_config(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Load a YAML configuration file and expand environment variables.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed configuration dictionary. Returns an empty dict if the file is
        empty.
    """

    config_path = Path(path)
    raw_text = config_path.read_text()
    expanded = os.path.expandvars(raw_text)
    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Config root must be a mapping, got {type(data)!r}")
    return dict(data)


def as_mapping(value: object) -> MutableMapping[str, Any]:
    if isinstance(value, MutableMapping):
        return value
    return {}


def as_list(value: object) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping)):
        return list(value)
    if value is None:
        return []
    return [value]


def as_float(value: object, default: float) -> float:
    try:
        if value is None:
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


def as_int(value: object, default: int) -> int:
    try:
        if value is None:
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


def as_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


__all__ = ["as_bool", "as_float", "as_int", "as_list", "as_mapping", "load_config"]
