"""Alertmanager webhook receiver.

Small aiohttp application that turns webhook POSTs into AlertEvents on the
bounded dispatcher queue, and exposes /metrics and /health.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST

from adapters.alertmanager_mapper import parse_webhook
from adapters.prometheus_metrics import PrometheusCommandMetrics
from core.models import AlertEvent

LOGGER = logging.getLogger(__name__)


def create_app(
    events: "asyncio.Queue[AlertEvent]",
    metrics: Optional[PrometheusCommandMetrics] = None,
) -> web.Application:
    """Build the webhook application around the dispatcher queue."""

    async def webhook_view(request: web.Request) -> web.Response:
        """Alertmanager webhook endpoint (webhook_config url)."""

        try:
            raw = await request.text()
            payload = json.loads(raw) if raw else None
            event = parse_webhook(payload)
        except ValueError as exc:
            LOGGER.warning("Rejected webhook payload: %s", exc)
            return web.json_response({"status": "error", "error": str(exc)}, status=400)

        if metrics is not None:
            metrics.observe_webhook()
        # Bounded queue: a slow dispatcher makes Alertmanager wait (and retry).
        await events.put(event)
        LOGGER.debug("Queued webhook for %s with %s alert(s)", event.receiver, len(event.alerts))
        return web.json_response({"status": "ok", "alerts": len(event.alerts)})

    async def health_view(request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def metrics_view(request: web.Request) -> web.Response:
        if metrics is None:
            return web.Response(status=404, text="metrics disabled")
        response = web.Response(body=metrics.exposition())
        response.headers["Content-Type"] = CONTENT_TYPE_LATEST
        return response

    app = web.Application()
    app.router.add_post("/", webhook_view)
    app.router.add_get("/health", health_view)
    app.router.add_get("/metrics", metrics_view)
    return app


async def start_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start serving ``app`` in the background; cleanup via the returned runner."""

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    LOGGER.info("Listening for Alertmanager webhooks on %s:%s", host, port)
    return runner
