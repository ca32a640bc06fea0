"""Async runtime harness that ties venues, the spread engine and alert delivery together."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from contextlib import suppress
from pathlib import Path
from typing import Any, Iterable, Mapping

import aiohttp
import uvicorn
from dotenv import load_dotenv

from admin import SnapshotPanel
from alerts import AlertScheduler, TelegramSpreadBot, format_funding, format_percent, format_price
from alerts.scheduler import DEFAULT_INTERVAL_SECONDS, DEFAULT_THRESHOLD_PERCENT, MIN_INTERVAL_SECONDS
from common import load_config, setup_logging
from common.config import as_bool, as_float, as_int, as_list, as_mapping
from common.logging import resolve_level
from spread import InstrumentRegistry, Spread, SpreadEngine, parse_aliases
from spread.engine import DEFAULT_MAX_CONCURRENT_REQUESTS
from venues import DEFAULT_TIMEOUT, build_adapters

logger = logging.getLogger(__name__)


def _log_level_from_config(
    config: Mapping[str, Any],
) -> tuple[int, Path | None, dict[str, Any]]:
    logging_cfg = as_mapping(config.get("logging"))
    level = resolve_level(logging_cfg.get("level"), logging.INFO)
    file_value = logging_cfg.get("file")
    log_file = Path(file_value) if isinstance(file_value, (str, Path)) else None
    return level, log_file, dict(as_mapping(logging_cfg.get("loggers")))


def _parse_chat_ids(raw: object) -> list[int]:
    chat_ids: list[int] = []
    for item in as_list(raw):
        try:
            chat_ids.append(int(item))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid Telegram chat id %r", item)
    return chat_ids


def build_engine(
    config: Mapping[str, Any], session: aiohttp.ClientSession | None = None
) -> SpreadEngine:
    """Wire adapters, registry and engine from the ``http``/``registry``/``venues`` sections."""

    http_cfg = as_mapping(config.get("http"))
    registry_cfg = as_mapping(config.get("registry"))

    adapters = build_adapters(
        as_mapping(config.get("venues")),
        session=session,
        timeout=as_float(http_cfg.get("timeout_seconds"), DEFAULT_TIMEOUT),
    )
    if not adapters:
        logger.warning("No venues enabled; spreads will always be empty")

    registry = InstrumentRegistry(
        adapters,
        aliases=parse_aliases(as_mapping(registry_cfg.get("aliases"))),
        refresh_interval=as_float(registry_cfg.get("refresh_minutes"), 10.0) * 60.0,
    )
    return SpreadEngine(
        registry,
        max_concurrent_requests=as_int(
            http_cfg.get("max_concurrent_requests"), DEFAULT_MAX_CONCURRENT_REQUESTS
        ),
    )


def format_ranking(spreads: Iterable[Spread]) -> str:
    """Plain-text ranking used by ``--scan-once``."""

    lines = []
    for position, spread in enumerate(spreads, start=1):
        high, low = spread.max_quote, spread.min_quote
        lines.append(
            f"{position:>3}. {spread.base:<12} {format_percent(spread.spread_percent):>10}%  "
            f"max {high.venue} {format_price(high.price)} (funding {format_funding(high.funding_rate)})  "
            f"min {low.venue} {format_price(low.price)} (funding {format_funding(low.funding_rate)})"
        )
    if not lines:
        return "No spreads available."
    return "\n".join(lines)


class BotRuntime:
    """Coordinate the spread engine, alert scheduler, Telegram bot and panel."""

    def __init__(self, config_path: Path, telegram_dry_run: bool = False) -> None:
        self.config_path = config_path
        self.telegram_dry_run = telegram_dry_run
        self._stop_event = asyncio.Event()

    def _prepare(self) -> dict[str, Any]:
        load_dotenv()
        config = load_config(self.config_path)
        level, log_file, logger_levels = _log_level_from_config(config)
        setup_logging(level, log_file, logger_levels)
        return config

    def _session(self, config: Mapping[str, Any]) -> aiohttp.ClientSession:
        http_cfg = as_mapping(config.get("http"))
        timeout = aiohttp.ClientTimeout(total=as_float(http_cfg.get("timeout_seconds"), DEFAULT_TIMEOUT))
        return aiohttp.ClientSession(timeout=timeout)

    async def scan_once(self, top_n: int) -> str:
        config = self._prepare()
        async with self._session(config) as session:
            engine = build_engine(config, session)
            return format_ranking(await engine.top(top_n))

    async def run(self) -> None:
        config = self._prepare()
        logger.info("Starting spread tracker runtime", extra={"config": str(self.config_path)})

        async with self._session(config) as session:
            engine = build_engine(config, session)
            bot: TelegramSpreadBot | None = None

            async def _notify(chat_id: int, spread: Spread, threshold: float) -> None:
                if bot is None:
                    logger.info(
                        "Spread alert for %s: %s %.4f%%", chat_id, spread.base, spread.spread_percent
                    )
                    return
                await bot.send_alert(chat_id, spread, threshold)

            alerts_cfg = as_mapping(config.get("alerts"))
            scheduler = AlertScheduler(
                engine,
                _notify,
                default_threshold_percent=as_float(
                    alerts_cfg.get("default_threshold_percent"), DEFAULT_THRESHOLD_PERCENT
                ),
                default_interval_seconds=as_float(
                    alerts_cfg.get("default_interval_seconds"), DEFAULT_INTERVAL_SECONDS
                ),
                min_interval_seconds=as_float(
                    alerts_cfg.get("min_interval_seconds"), MIN_INTERVAL_SECONDS
                ),
            )

            bot = self._build_telegram_bot(config, engine, scheduler)
            if bot:
                await bot.start()

            admin_server, admin_task = self._start_admin(config, engine, scheduler)

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                with suppress(NotImplementedError):
                    loop.add_signal_handler(sig, self._stop_event.set)

            try:
                await self._stop_event.wait()
            finally:
                await scheduler.shutdown()
                if admin_server is not None and admin_task is not None:
                    admin_server.should_exit = True
                    with suppress(asyncio.CancelledError):
                        await admin_task
                if bot:
                    await bot.stop()
                logger.info("Spread tracker runtime stopped")

    def stop(self) -> None:
        self._stop_event.set()

    def _build_telegram_bot(
        self, config: Mapping[str, Any], engine: SpreadEngine, scheduler: AlertScheduler
    ) -> TelegramSpreadBot | None:
        telegram_cfg = as_mapping(config.get("telegram"))
        enabled = as_bool(telegram_cfg.get("enabled"), False) or self.telegram_dry_run
        if not enabled:
            logger.info("Telegram delivery disabled in configuration")
            return None

        token = str(telegram_cfg.get("bot_token") or "")
        if not token and not self.telegram_dry_run:
            logger.warning("Telegram enabled but bot token missing; disabling Telegram bot")
            return None

        return TelegramSpreadBot(
            token=token,
            engine=engine,
            scheduler=scheduler,
            allowed_chat_ids=_parse_chat_ids(telegram_cfg.get("allowed_chat_ids")),
            snapshot_top_n=as_int(telegram_cfg.get("snapshot_top_n"), 10),
            dry_run=self.telegram_dry_run,
        )

    def _start_admin(
        self, config: Mapping[str, Any], engine: SpreadEngine, scheduler: AlertScheduler
    ) -> tuple[uvicorn.Server | None, asyncio.Task[None] | None]:
        admin_cfg = as_mapping(config.get("admin"))
        if not as_bool(admin_cfg.get("enabled"), False):
            return None, None

        panel = SnapshotPanel(engine, scheduler=scheduler, top_n=as_int(admin_cfg.get("top_n"), 25))
        server = uvicorn.Server(
            uvicorn.Config(
                panel.app,
                host=str(admin_cfg.get("host", "127.0.0.1")),
                port=as_int(admin_cfg.get("port"), 8000),
                log_level="warning",
            )
        )
        # Signals are handled by the runtime itself.
        server.install_signal_handlers = lambda: None  # type: ignore[method-assign]
        task = asyncio.create_task(server.serve(), name="snapshot-panel")
        logger.info("Snapshot panel listening on %s:%s", server.config.host, server.config.port)
        return server, task


async def run_bot(config_path: str, telegram_dry_run: bool = False) -> None:
    runtime = BotRuntime(Path(config_path), telegram_dry_run=telegram_dry_run)
    await runtime.run()


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track perpetual futures price spreads across venues")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--telegram-dry-run",
        action="store_true",
        help="Do not contact Telegram; print messages locally",
    )
    parser.add_argument(
        "--scan-once",
        action="store_true",
        help="Print the current spread ranking and exit",
    )
    parser.add_argument("--top", type=int, default=10, help="Rows to print with --scan-once")
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    if args.scan_once:
        runtime = BotRuntime(Path(args.config))
        print(asyncio.run(runtime.scan_once(max(1, args.top))))
        return
    asyncio.run(run_bot(args.config, telegram_dry_run=args.telegram_dry_run))


if __name__ == "__main__":  # pragma: no cover - CLI execution path
    main()
