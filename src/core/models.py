"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to Telethon, aiohttp or Alertmanager payload types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from core.filters import LabelRule


class ParseMode(Enum):
    """Rendering mode requested from the chat transport."""

    PLAIN = "plain"
    MARKDOWN = "markdown"
    HTML = "html"


@dataclass(frozen=True)
class Subscriber:
    """A chat registered to receive filtered alert notifications."""

    chat_id: int
    display_name: str
    filter_rules: Dict[str, LabelRule] = field(default_factory=dict)


@dataclass(frozen=True)
class Alert:
    """A single alert, either from a webhook or from the Alertmanager API."""

    status: str
    labels: Dict[str, str]
    annotations: Dict[str, str]
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    generator_url: str = ""
    fingerprint: str = ""


@dataclass(frozen=True)
class AlertEvent:
    """One Alertmanager webhook notification (a group of alerts)."""

    receiver: str
    status: str
    alerts: Tuple[Alert, ...]
    group_labels: Dict[str, str]
    common_labels: Dict[str, str]
    common_annotations: Dict[str, str]
    external_url: str


@dataclass(frozen=True)
class SilenceMatcher:
    name: str
    value: str
    is_regex: bool = False
    is_equal: bool = True


@dataclass(frozen=True)
class Silence:
    id: str
    state: str
    matchers: List[SilenceMatcher]
    starts_at: Optional[datetime]
    ends_at: Optional[datetime]
    created_by: str
    comment: str


@dataclass(frozen=True)
class AlertmanagerStatus:
    version: str
    uptime_since: datetime


@dataclass(frozen=True)
class IncomingMessage:
    """Minimal chat message context used by the command supervisor."""

    chat_id: int
    chat_title: str
    is_group: bool
    sender_id: int
    sender_username: str
    sender_first_name: str
    text: str
    is_service: bool = False

    @property
    def chat_display_name(self) -> str:
        """Group chats are listed by title, private chats by username."""

        if self.is_group:
            return self.chat_title
        return self.sender_username or self.sender_first_name
