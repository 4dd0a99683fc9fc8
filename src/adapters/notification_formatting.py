"""Shared notification formatting helpers.

All chat output that depends on Alertmanager data is rendered from Jinja2
templates here, so the webhook fan-out and the /alerts listing can never drift
apart. Bundled templates live next to this module; a user directory can
override any of them by file name.

`.html` templates are autoescaped. `.md` templates are sent with Telethon's
markdown parse mode, which has no escape syntax, so values are inserted as-is.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

import jinja2

from core.errors import TemplateError
from core.models import SilenceMatcher

BUNDLED_TEMPLATES = os.path.join(os.path.dirname(__file__), "templates")

_UNITS = (
    ("year", 365 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


def format_duration(value: Optional[timedelta]) -> str:
    """Return a human-readable duration such as ``2 days 3 hours 5 minutes``."""

    if value is None:
        return "unknown"
    remaining = int(max(value.total_seconds(), 0))
    if remaining == 0:
        return "0 seconds"
    parts = []
    for name, seconds in _UNITS:
        amount, remaining = divmod(remaining, seconds)
        if amount:
            parts.append(f"{amount} {name}{'' if amount == 1 else 's'}")
    return " ".join(parts)


def format_age(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    if value is None:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    return format_duration(now - value)


def format_datetime(value: Optional[datetime]) -> str:
    if value is None:
        return "never"
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def matcher_operator(matcher: SilenceMatcher) -> str:
    if matcher.is_regex:
        return "=~" if matcher.is_equal else "!~"
    return "=" if matcher.is_equal else "!="


def build_environment(templates_path: Optional[str] = None) -> jinja2.Environment:
    """Create the Jinja2 environment with alertgram's filters registered."""

    loaders = []
    if templates_path:
        loaders.append(jinja2.FileSystemLoader(templates_path))
    loaders.append(jinja2.FileSystemLoader(BUNDLED_TEMPLATES))

    env = jinja2.Environment(
        loader=jinja2.ChoiceLoader(loaders),
        autoescape=jinja2.select_autoescape(enabled_extensions=("html",), default_for_string=False),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["duration"] = format_duration
    env.filters["age"] = format_age
    env.filters["datetime"] = format_datetime
    env.filters["matcher_operator"] = matcher_operator
    return env


class JinjaTemplateRenderer:
    """TemplateRendererPort implementation backed by Jinja2."""

    def __init__(self, templates_path: Optional[str] = None) -> None:
        self._env = build_environment(templates_path)

    def render(self, template_name: str, data: Mapping[str, Any]) -> str:
        try:
            template = self._env.get_template(template_name)
            return template.render(**data)
        except jinja2.TemplateError as exc:
            raise TemplateError(f"{template_name}: {exc}") from exc
