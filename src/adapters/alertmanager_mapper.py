"""Alertmanager payload mapping adapter.

Converts webhook bodies and API v2 responses into core models.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from core.models import Alert, AlertEvent, AlertmanagerStatus, Silence, SilenceMatcher

# Go timestamps carry up to nanosecond precision; datetime only takes micros.
_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp as emitted by Alertmanager."""

    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    # Alertmanager uses the zero time for "unset".
    if parsed.year <= 1:
        return None
    return parsed


def _string_map(raw: Any) -> Dict[str, str]:
    if not raw:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"expected an object, got {type(raw).__name__}")
    return {str(key): str(value) for key, value in raw.items()}


def parse_alert(raw: Mapping[str, Any], now: Optional[datetime] = None) -> Alert:
    """Build an Alert from a webhook alert or an API v2 gettable alert."""

    ends_at = parse_timestamp(raw.get("endsAt"))
    status = raw.get("status")
    if not isinstance(status, str):
        # API v2 alerts have a status object; firing is derived from endsAt.
        now = now or datetime.now(timezone.utc)
        status = "resolved" if ends_at is not None and ends_at <= now else "firing"
    return Alert(
        status=status,
        labels=_string_map(raw.get("labels")),
        annotations=_string_map(raw.get("annotations")),
        starts_at=parse_timestamp(raw.get("startsAt")),
        ends_at=ends_at,
        generator_url=str(raw.get("generatorURL") or ""),
        fingerprint=str(raw.get("fingerprint") or ""),
    )


def parse_webhook(payload: Any) -> AlertEvent:
    """Build an AlertEvent from an Alertmanager webhook body.

    Raises ValueError when the payload does not have the webhook shape.
    """

    if not isinstance(payload, Mapping):
        raise ValueError("webhook payload must be an object")
    raw_alerts = payload.get("alerts")
    if not isinstance(raw_alerts, list):
        raise ValueError("webhook payload has no alerts list")

    alerts: List[Alert] = []
    for raw in raw_alerts:
        if not isinstance(raw, Mapping):
            raise ValueError("webhook alert must be an object")
        alerts.append(parse_alert(raw))

    return AlertEvent(
        receiver=str(payload.get("receiver") or ""),
        status=str(payload.get("status") or ""),
        alerts=tuple(alerts),
        group_labels=_string_map(payload.get("groupLabels")),
        common_labels=_string_map(payload.get("commonLabels")),
        common_annotations=_string_map(payload.get("commonAnnotations")),
        external_url=str(payload.get("externalURL") or ""),
    )


def parse_status(payload: Mapping[str, Any]) -> AlertmanagerStatus:
    version_info = payload.get("versionInfo") or {}
    uptime = parse_timestamp(payload.get("uptime"))
    if uptime is None:
        raise ValueError("status response has no uptime")
    return AlertmanagerStatus(version=str(version_info.get("version", "")), uptime_since=uptime)


def parse_silence(raw: Mapping[str, Any]) -> Silence:
    matchers = [
        SilenceMatcher(
            name=str(matcher.get("name", "")),
            value=str(matcher.get("value", "")),
            is_regex=bool(matcher.get("isRegex", False)),
            is_equal=bool(matcher.get("isEqual", True)),
        )
        for matcher in raw.get("matchers") or []
    ]
    status = raw.get("status") or {}
    return Silence(
        id=str(raw.get("id", "")),
        state=str(status.get("state", "")),
        matchers=matchers,
        starts_at=parse_timestamp(raw.get("startsAt")),
        ends_at=parse_timestamp(raw.get("endsAt")),
        created_by=str(raw.get("createdBy", "")),
        comment=str(raw.get("comment", "")),
    )
