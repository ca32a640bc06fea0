"""Telegram front end: spread snapshots, alert delivery and subscriber commands."""

from __future__ import annotations

import html
import logging
import math
import re
from collections.abc import Collection, Sequence
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Protocol

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, LinkPreviewOptions, Message, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import (
    AIORateLimiter,
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from common.models import Quote
from spread.engine import Spread

from .scheduler import AlertScheduler

logger = logging.getLogger(__name__)

CALLBACK_PREFIX = "SPREAD_SNAPSHOT_TOP_N:"
DEFAULT_TOP_N = 10
MISSING = "—"

LinkBuilder = Callable[[str, str], str]

HELP_TEXT = """\
Commands:
• /update [N] — show top-N spreads right now
• <code>/spread &lt;percent&gt;</code> — alert when spread ≥ percent (e.g. <code>/spread 10</code>)
• <code>/interval &lt;time&gt;</code> — scan period (e.g. <code>/interval 30s</code> | <code>10m</code> | <code>1h</code>)
• /spread_stop — stop alerts

Notes: scans all USDT perpetual futures across Binance, Bybit, KuCoin, Gate, Bitget, MEXC,
plus Hyperliquid (DEX). BingX, HTX, XT, LBank, Aster, Lighter are linked when available.
"""

_DURATION = re.compile(r"^([0-9]+)([smh]?)$")
_DURATION_UNITS = {"s": 1.0, "m": 60.0, "": 60.0, "h": 3600.0}
_PRICE_PLACES = Decimal("0.0001")
_NO_PREVIEW = LinkPreviewOptions(is_disabled=True)


class SnapshotSource(Protocol):
    async def top(self, limit: int) -> list[Spread]: ...

    def link_for(self, venue: str, canonical: str) -> str: ...


def format_price(value: Decimal | None) -> str:
    if value is None:
        return MISSING
    return f"{value.quantize(_PRICE_PLACES, rounding=ROUND_HALF_UP):f}"


def format_percent(value: float) -> str:
    return f"{value:.4f}"


def format_funding(value: float | None) -> str:
    """Render a funding fraction as a percent number (``-0.00012`` -> ``-0.012``)."""

    if value is None:
        return MISSING
    text = f"{value * 100.0:.6f}".rstrip("0").rstrip(".")
    if text in {"", "-", "-0"}:
        return "0"
    return text


def parse_percent(token: str) -> float:
    """Parse ``10``, ``10%`` or ``0,5`` into a float percentage."""

    value = float(token.strip().replace("%", "").replace(",", "."))
    if not math.isfinite(value):
        raise ValueError(f"Invalid percent: {token!r}")
    return value


def parse_duration(token: str) -> float:
    """Parse ``30s``, ``10m``, ``1h`` or a bare number of minutes into seconds."""

    match = _DURATION.match(token.strip().lower())
    if not match:
        raise ValueError(f"Invalid duration: {token!r}")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


def parse_top_n(args: Sequence[str] | None, default: int = DEFAULT_TOP_N) -> int:
    if not args:
        return default
    try:
        return max(1, int(args[0]))
    except ValueError:
        return default


def _venue_link(quote: Quote, ticker: str, link_for: LinkBuilder) -> str:
    url = link_for(quote.venue, ticker)
    return f'<a href="{html.escape(url)}">{html.escape(quote.venue)}</a>'


def _quote_lines(spread: Spread, link_for: LinkBuilder) -> str:
    lines = []
    for quote in (spread.max_quote, spread.min_quote):
        lines.append(
            f"{_venue_link(quote, spread.ticker, link_for)}: {format_price(quote.price)}. "
            f"Funding: {format_funding(quote.funding_rate)}"
        )
    return "\n".join(lines) + "\n"


def render_spread_block(spread: Spread, link_for: LinkBuilder) -> str:
    return (
        f"<b>{html.escape(spread.base)}</b> (USDT): {format_percent(spread.spread_percent)}%\n\n"
        + _quote_lines(spread, link_for)
    )


def build_snapshot_message(
    spreads: Sequence[Spread],
    top_n: int,
    link_for: LinkBuilder,
    now: datetime | None = None,
) -> str:
    """Render the ``/update`` body for already ranked ``spreads``."""

    shown = list(spreads[: max(0, top_n)])
    timestamp = (now or datetime.now(tz=timezone.utc)).strftime("%Y-%m-%d %H:%M:%S")
    parts = [
        f"<b>🔎 Futures price spread (top {len(shown)})</b>\n<i>UTC: {timestamp}</i>\n\n"
    ]
    if not shown:
        parts.append("No spreads available right now.\n")
    for spread in shown:
        parts.append(render_spread_block(spread, link_for) + "\n")
    return "".join(parts)


def build_alert_message(spread: Spread, threshold: float, link_for: LinkBuilder) -> str:
    return (
        "<b>⚡ Futures spread alert</b>\n"
        f"<b>{html.escape(spread.base)}</b> — Δ <code>{format_percent(spread.spread_percent)}%</code>"
        f" (≥ {format_percent(threshold)}%)\n\n"
        + _quote_lines(spread, link_for)
    )


def update_keyboard(top_n: int) -> InlineKeyboardMarkup:
    button = InlineKeyboardButton("🔄 Update", callback_data=f"{CALLBACK_PREFIX}{top_n}")
    return InlineKeyboardMarkup([[button]])


class TelegramSpreadBot:
    """Serve spread snapshots and per-chat alert settings over Telegram."""

    def __init__(
        self,
        token: str,
        engine: SnapshotSource,
        scheduler: AlertScheduler,
        *,
        allowed_chat_ids: Collection[int] = (),
        snapshot_top_n: int = DEFAULT_TOP_N,
        dry_run: bool = False,
    ) -> None:
        self._token = token
        self.engine = engine
        self.scheduler = scheduler
        self.allowed_chat_ids = frozenset(allowed_chat_ids)
        self.snapshot_top_n = max(1, snapshot_top_n)
        self.dry_run = dry_run
        self._application: Application | None = None

    async def start(self) -> None:
        if self.dry_run:
            logger.info("Telegram bot running in dry-run mode; not starting polling")
            return
        if self._application is not None:
            return

        self._application = (
            ApplicationBuilder()
            .token(self._token)
            .rate_limiter(AIORateLimiter())
            .build()
        )
        self._application.add_handler(CommandHandler("start", self._handle_start))
        self._application.add_handler(CommandHandler("update", self._handle_update))
        self._application.add_handler(CommandHandler("spread", self._handle_spread))
        self._application.add_handler(CommandHandler("interval", self._handle_interval))
        self._application.add_handler(CommandHandler("spread_stop", self._handle_spread_stop))
        self._application.add_handler(
            CallbackQueryHandler(self._handle_callback, pattern=f"^{re.escape(CALLBACK_PREFIX)}")
        )
        self._application.add_error_handler(self._handle_error)

        await self._application.initialize()
        await self._application.start()
        await self._application.updater.start_polling()
        logger.info("Telegram bot polling started")

    async def stop(self) -> None:
        if self._application is None:
            return
        await self._application.updater.stop()
        await self._application.stop()
        await self._application.shutdown()
        self._application = None
        logger.info("Telegram bot stopped")

    async def send_alert(self, chat_id: int, spread: Spread, threshold: float) -> None:
        """Deliver a threshold alert; used as the scheduler's notifier."""

        await self._send(chat_id, build_alert_message(spread, threshold, self.engine.link_for))

    async def snapshot_text(self, top_n: int) -> str:
        spreads = await self.engine.top(top_n)
        return build_snapshot_message(spreads, top_n, self.engine.link_for)

    def is_authorised(self, chat_id: int | None) -> bool:
        if chat_id is None:
            return False
        return not self.allowed_chat_ids or chat_id in self.allowed_chat_ids

    async def _send(
        self,
        chat_id: int,
        text: str,
        *,
        html_mode: bool = True,
        reply_markup: InlineKeyboardMarkup | None = None,
    ) -> Message | None:
        if self.dry_run:
            print(f"[DRY-RUN] chat {chat_id}: {text}")
            return None
        if self._application is None:
            raise RuntimeError("Telegram bot has not been started")
        return await self._application.bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode=ParseMode.HTML if html_mode else None,
            link_preview_options=_NO_PREVIEW,
            reply_markup=reply_markup,
        )

    def _chat_id(self, update: Update) -> int | None:
        chat = update.effective_chat
        chat_id = chat.id if chat is not None else None
        if not self.is_authorised(chat_id):
            logger.debug("Ignoring command from unauthorised chat %s", chat_id)
            return None
        return chat_id

    async def _handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = self._chat_id(update)
        if chat_id is None:
            return
        message = await self._send(chat_id, HELP_TEXT)
        if message is None or self._application is None:
            return
        try:
            await self._application.bot.pin_chat_message(chat_id=chat_id, message_id=message.message_id)
        except TelegramError as exc:
            logger.info("Could not pin help message in chat %s: %s", chat_id, exc)

    async def _handle_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = self._chat_id(update)
        if chat_id is None:
            return
        top_n = parse_top_n(context.args, self.snapshot_top_n)
        text = await self.snapshot_text(top_n)
        await self._send(chat_id, text, reply_markup=update_keyboard(top_n))

    async def _handle_spread(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = self._chat_id(update)
        if chat_id is None:
            return
        usage = "Usage: /spread <percent>\nExample: /spread 10"
        if not context.args:
            await self._send(chat_id, usage, html_mode=False)
            return
        try:
            threshold = parse_percent(context.args[0])
        except ValueError:
            await self._send(chat_id, usage, html_mode=False)
            return
        await self.scheduler.set_threshold(chat_id, threshold)
        await self._send(chat_id, f"✅ Threshold set to ≥ {format_percent(threshold)}%", html_mode=False)

    async def _handle_interval(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = self._chat_id(update)
        if chat_id is None:
            return
        usage = "Usage: /interval <time>\nExamples: /interval 30s | 10m | 1h"
        if not context.args:
            await self._send(chat_id, usage, html_mode=False)
            return
        try:
            seconds = parse_duration(context.args[0])
        except ValueError:
            await self._send(chat_id, usage, html_mode=False)
            return
        await self.scheduler.set_interval(chat_id, seconds)
        await self._send(chat_id, f"⏱️ Scan interval set to {context.args[0]}", html_mode=False)

    async def _handle_spread_stop(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = self._chat_id(update)
        if chat_id is None:
            return
        await self.scheduler.stop(chat_id)
        await self._send(chat_id, "🔕 Spread alerts stopped.", html_mode=False)

    async def _handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if query is None or not self.is_authorised(query.message.chat.id if query.message else None):
            return
        data = query.data or ""
        try:
            top_n = max(1, int(data[len(CALLBACK_PREFIX):]))
        except ValueError:
            top_n = self.snapshot_top_n

        try:
            text = await self.snapshot_text(top_n)
            await query.edit_message_text(
                text=text,
                parse_mode=ParseMode.HTML,
                link_preview_options=_NO_PREVIEW,
                reply_markup=update_keyboard(top_n),
            )
            await query.answer()
        except TelegramError as exc:
            logger.warning("Snapshot refresh failed: %s", exc)
            await query.answer(text=f"Update failed: {exc}", show_alert=True)

    async def _handle_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error("Telegram handler failed for update %s", update, exc_info=context.error)


__all__ = [
    "CALLBACK_PREFIX",
    "HELP_TEXT",
    "TelegramSpreadBot",
    "build_alert_message",
    "build_snapshot_message",
    "format_funding",
    "format_percent",
    "format_price",
    "parse_duration",
    "parse_percent",
    "parse_top_n",
    "render_spread_block",
    "update_keyboard",
]
