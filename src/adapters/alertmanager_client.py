"""Alertmanager API v2 client adapter.

Implements the core AlertmanagerPort with aiohttp. Every failure, transport or
decoding, surfaces as UpstreamError so the command handlers can show it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import aiohttp

from adapters.alertmanager_mapper import parse_alert, parse_silence, parse_status
from core.errors import UpstreamError
from core.models import Alert, AlertmanagerStatus, Silence

LOGGER = logging.getLogger(__name__)


class AlertmanagerClient:
    """Read-only queries against an Alertmanager instance."""

    def __init__(self, base_url: str, timeout_seconds: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "AlertmanagerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _get_json(self, path: str) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with self._get_session().get(url, headers={"Accept": "application/json"}) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise UpstreamError(f"{url} returned {response.status}: {body.strip()[:200]}")
                return await response.json(content_type=None)
        except UpstreamError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            LOGGER.warning("Alertmanager request %s failed: %s", url, exc)
            raise UpstreamError(f"{url}: {exc}") from exc

    async def get_status(self) -> AlertmanagerStatus:
        payload = await self._get_json("/api/v2/status")
        try:
            return parse_status(payload)
        except (AttributeError, TypeError, ValueError) as exc:
            raise UpstreamError(f"cannot decode status: {exc}") from exc

    async def list_alerts(self) -> List[Alert]:
        payload = await self._get_json("/api/v2/alerts")
        try:
            return [parse_alert(raw) for raw in payload]
        except (AttributeError, TypeError, ValueError) as exc:
            raise UpstreamError(f"cannot decode alerts: {exc}") from exc

    async def list_silences(self) -> List[Silence]:
        """Return active and pending silences; expired ones are skipped."""

        payload = await self._get_json("/api/v2/silences")
        try:
            silences = [parse_silence(raw) for raw in payload]
        except (AttributeError, TypeError, ValueError) as exc:
            raise UpstreamError(f"cannot decode silences: {exc}") from exc
        return [silence for silence in silences if silence.state != "expired"]
