"""Tests for configuration loading and runtime wiring."""

from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path

import pytest

pytest.importorskip("yaml")

from app.runtime import BotRuntime, _log_level_from_config, build_engine, format_ranking, parse_args
from common.config import as_bool, as_float, as_int, as_list, as_mapping, load_config
from common.logging import resolve_level, setup_logging
from common.models import GroupKey, Quote
from spread.engine import build_spread


def test_load_config_expands_environment(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    path = tmp_path / "config.yaml"
    path.write_text("telegram:\n  bot_token: ${TELEGRAM_BOT_TOKEN}\n  enabled: true\n")

    config = load_config(path)

    assert config["telegram"] == {"bot_token": "123:abc", "enabled": True}


def test_load_config_handles_empty_and_rejects_lists(tmp_path: Path) -> None:
    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    assert load_config(empty) == {}

    bad = tmp_path / "bad.yaml"
    bad.write_text("- one\n- two\n")
    with pytest.raises(ValueError):
        load_config(bad)


def test_scalar_helpers_fall_back_to_defaults() -> None:
    assert as_float("2.5", 1.0) == 2.5
    assert as_float("soon", 1.0) == 1.0
    assert as_int(None, 4) == 4
    assert as_int("12", 4) == 12
    assert as_bool("off", True) is False
    assert as_bool("YES", False) is True
    assert as_bool(None, True) is True
    assert as_list(None) == []
    assert as_list("x") == ["x"]
    assert as_list(("a", "b")) == ["a", "b"]
    assert as_mapping(["not", "a", "mapping"]) == {}


def test_build_engine_reads_sections() -> None:
    config = {
        "http": {"max_concurrent_requests": 4, "timeout_seconds": 3},
        "registry": {"refresh_minutes": 5, "aliases": {"GATE:ABC": "Alphabet"}},
        "venues": {"binance": {"enabled": False}, "lighter": {"enabled": "false"}},
    }

    engine = build_engine(config)

    registry = engine.registry
    assert registry.refresh_interval == 300.0
    assert "Binance" not in registry.adapters
    assert "Lighter" not in registry.adapters
    assert "Bybit" in registry.adapters
    assert registry._aliases[("GATE", "ABC")] == "Alphabet"
    assert registry._aliases[("BITGET", "VELO")] == "VELODROME"


def test_format_ranking_lists_positions() -> None:
    spread = build_spread(
        GroupKey("BTCUSDT", "BTC"),
        [
            Quote(venue="Bybit", native_symbol="BTCUSDT", price=Decimal("105"), funding_rate=0.0001),
            Quote(venue="Binance", native_symbol="BTCUSDT", price=Decimal("100")),
        ],
    )

    text = format_ranking([spread])

    assert text.startswith("  1. BTC")
    assert "5.0000%" in text
    assert "max Bybit 105.0000 (funding 0.01)" in text
    assert "min Binance 100.0000 (funding —)" in text
    assert format_ranking([]) == "No spreads available."


def test_parse_args_defaults_and_scan_once() -> None:
    args = parse_args([])
    assert args.config == "config.yaml"
    assert args.scan_once is False
    assert args.top == 10

    args = parse_args(["--config", "alt.yaml", "--scan-once", "--top", "3", "--telegram-dry-run"])
    assert args.config == "alt.yaml"
    assert args.scan_once is True
    assert args.top == 3
    assert args.telegram_dry_run is True


def test_telegram_bot_requires_token_unless_dry_run() -> None:
    engine = build_engine({})
    runtime = BotRuntime(Path("config.yaml"))
    dry_runtime = BotRuntime(Path("config.yaml"), telegram_dry_run=True)
    config = {"telegram": {"enabled": True, "bot_token": "", "allowed_chat_ids": [1, "x"]}}

    assert runtime._build_telegram_bot(config, engine, scheduler=None) is None  # type: ignore[arg-type]
    bot = dry_runtime._build_telegram_bot(config, engine, scheduler=None)  # type: ignore[arg-type]
    assert bot is not None
    assert bot.dry_run is True
    assert bot.allowed_chat_ids == frozenset({1})
    assert runtime._build_telegram_bot({}, engine, scheduler=None) is None  # type: ignore[arg-type]


def test_logging_section_is_parsed() -> None:
    level, log_file, loggers = _log_level_from_config(
        {"logging": {"level": "debug", "file": "logs/x.log", "loggers": {"telegram": "ERROR"}}}
    )
    assert level == logging.DEBUG
    assert log_file == Path("logs/x.log")
    assert loggers == {"telegram": "ERROR"}

    assert _log_level_from_config({}) == (logging.INFO, None, {})
    assert _log_level_from_config({"logging": {"level": "chatty"}})[0] == logging.INFO


def test_resolve_level_accepts_names_and_numbers() -> None:
    assert resolve_level("warning", logging.INFO) == logging.WARNING
    assert resolve_level(15, logging.INFO) == 15
    assert resolve_level("nonsense", logging.INFO) == logging.INFO
    assert resolve_level(True, logging.INFO) == logging.INFO
    assert resolve_level(None, logging.ERROR) == logging.ERROR


def test_setup_logging_applies_logger_levels(tmp_path: Path) -> None:
    names = ("aiohttp", "telegram", "spread.custom")
    saved = {name: logging.getLogger(name).level for name in names}
    try:
        setup_logging(
            logging.INFO,
            tmp_path / "tracker.log",
            {"telegram": "debug", "spread.custom": logging.ERROR, "aiohttp": "loud"},
        )

        assert logging.getLogger("telegram").level == logging.DEBUG
        assert logging.getLogger("spread.custom").level == logging.ERROR
        # Invalid names are skipped, leaving the default in place.
        assert logging.getLogger("aiohttp").level == logging.WARNING
    finally:
        for name, level in saved.items():
            logging.getLogger(name).setLevel(level)
