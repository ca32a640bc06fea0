"""FastAPI snapshot panel showing the current spread ranking."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI, Query
from fastapi.responses import HTMLResponse, JSONResponse
from jinja2 import Environment, select_autoescape

from alerts.scheduler import AlertScheduler
from alerts.telegram import format_funding, format_percent, format_price
from common.models import Quote
from spread.engine import Spread, SpreadEngine

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 25
MAX_TOP_N = 500

_PAGE_TEMPLATE = """\
<!doctype html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <title>Futures Spread Snapshot</title>
    <style>
      body { font-family: sans-serif; margin: 2rem auto; max-width: 1100px; color: #222; }
      h1 { margin-bottom: 0.25rem; }
      .meta { color: #666; margin-bottom: 1.5rem; }
      table { border-collapse: collapse; width: 100%; }
      th, td { border-bottom: 1px solid #ddd; padding: 0.4rem 0.6rem; text-align: left; }
      td.num { text-align: right; font-variant-numeric: tabular-nums; }
      .empty { padding: 1rem; background: #f6f6f6; }
    </style>
  </head>
  <body>
    <h1>Futures price spread (top {{ rows|length }})</h1>
    <div class=\"meta\">UTC: {{ generated_at }} &middot; venues: {{ venue_count }} &middot; groups: {{ group_count }}</div>
    {% if rows %}
    <table>
      <thead>
        <tr>
          <th>#</th><th>Asset</th><th>Spread %</th>
          <th>Max venue</th><th>Max price</th><th>Funding</th>
          <th>Min venue</th><th>Min price</th><th>Funding</th>
        </tr>
      </thead>
      <tbody>
        {% for row in rows %}
        <tr>
          <td>{{ loop.index }}</td>
          <td title=\"{{ row.long_name }}\">{{ row.base }}</td>
          <td class=\"num\">{{ row.spread_percent }}</td>
          <td><a href=\"{{ row.max.url }}\" target=\"_blank\" rel=\"noopener\">{{ row.max.venue }}</a></td>
          <td class=\"num\">{{ row.max.price }}</td>
          <td class=\"num\">{{ row.max.funding }}</td>
          <td><a href=\"{{ row.min.url }}\" target=\"_blank\" rel=\"noopener\">{{ row.min.venue }}</a></td>
          <td class=\"num\">{{ row.min.price }}</td>
          <td class=\"num\">{{ row.min.funding }}</td>
        </tr>
        {% endfor %}
      </tbody>
    </table>
    {% else %}
    <div class=\"empty\">No spreads available right now.</div>
    {% endif %}
  </body>
</html>
"""


def _clamp_top(value: int | None, default: int) -> int:
    if value is None:
        return default
    return max(1, min(value, MAX_TOP_N))


@dataclass
class SnapshotPanel:
    """Read-only HTTP view over the spread engine and alert subscribers."""

    engine: SpreadEngine
    scheduler: AlertScheduler | None = None
    top_n: int = DEFAULT_TOP_N

    def __post_init__(self) -> None:
        self._template = Environment(autoescape=select_autoescape(["html", "xml"])).from_string(
            _PAGE_TEMPLATE
        )
        self.app = FastAPI(title="Futures Spread Snapshot")
        self.app.add_api_route("/", self.index, methods=["GET"], response_class=HTMLResponse)
        self.app.add_api_route("/api/spreads", self.spreads, methods=["GET"])
        self.app.add_api_route("/api/subscribers", self.subscribers, methods=["GET"])
        self.app.add_api_route("/health", self.health, methods=["GET"])

    async def index(self, top: int | None = Query(default=None)) -> HTMLResponse:
        ranked = await self.engine.top(_clamp_top(top, self.top_n))
        snapshot = self.engine.registry.snapshot
        html = self._template.render(
            rows=[self._row(spread) for spread in ranked],
            generated_at=datetime.now(tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            venue_count=len(self.engine.registry.adapters),
            group_count=len(snapshot),
        )
        return HTMLResponse(html)

    async def spreads(self, top: int | None = Query(default=None)) -> JSONResponse:
        ranked = await self.engine.top(_clamp_top(top, self.top_n))
        return JSONResponse({"spreads": [self._serialise(spread) for spread in ranked]})

    async def subscribers(self) -> JSONResponse:
        if self.scheduler is None:
            return JSONResponse({"subscribers": []})
        items = [
            {
                "subscriber_id": state.subscriber_id,
                "threshold_percent": state.threshold_percent,
                "interval_seconds": state.interval_seconds,
                "active": state.active,
            }
            for state in self.scheduler.subscribers()
        ]
        return JSONResponse({"subscribers": items})

    async def health(self) -> JSONResponse:
        snapshot = self.engine.registry.snapshot
        refreshed = None
        if snapshot.created_at is not None:
            refreshed = datetime.fromtimestamp(snapshot.created_at, tz=timezone.utc).isoformat()
        return JSONResponse(
            {
                "status": "ok",
                "venues": len(self.engine.registry.adapters),
                "groups": len(snapshot),
                "registry_refreshed_at": refreshed,
            }
        )

    def _venue_cell(self, quote: Quote, ticker: str) -> Dict[str, Any]:
        return {
            "venue": quote.venue,
            "url": self.engine.link_for(quote.venue, ticker),
            "price": format_price(quote.price),
            "funding": format_funding(quote.funding_rate),
        }

    def _row(self, spread: Spread) -> Dict[str, Any]:
        return {
            "base": spread.base,
            "long_name": spread.long_name,
            "spread_percent": format_percent(spread.spread_percent),
            "max": self._venue_cell(spread.max_quote, spread.ticker),
            "min": self._venue_cell(spread.min_quote, spread.ticker),
        }

    def _serialise(self, spread: Spread) -> Dict[str, Any]:
        def quote_json(quote: Quote) -> Dict[str, Any]:
            return {
                "venue": quote.venue,
                "native_symbol": quote.native_symbol,
                "price": str(quote.price),
                "funding_rate": quote.funding_rate,
                "url": self.engine.link_for(quote.venue, spread.ticker),
            }

        return {
            "ticker": spread.ticker,
            "base": spread.base,
            "long_name": spread.long_name,
            "spread_percent": spread.spread_percent,
            "max": quote_json(spread.max_quote),
            "min": quote_json(spread.min_quote),
            "quotes": [quote_json(quote) for quote in spread.quotes],
        }


def create_snapshot_app(
    engine: SpreadEngine, scheduler: AlertScheduler | None = None, top_n: int = DEFAULT_TOP_N
) -> FastAPI:
    """Convenience helper to build the FastAPI app."""

    panel = SnapshotPanel(engine, scheduler=scheduler, top_n=top_n)
    return panel.app


__all__ = ["SnapshotPanel", "create_snapshot_app"]
