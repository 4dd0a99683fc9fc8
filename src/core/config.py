"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Tuple


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CommandConfig:
    """Settings consumed by the command supervisor."""

    admins: Tuple[int, ...]
    revision: str = "unknown"
    started_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def build(cls, admins: Iterable[int], revision: str = "unknown", started_at=None) -> "CommandConfig":
        """Sort and deduplicate admin ids so membership can be bisected."""

        return cls(
            admins=tuple(sorted(set(int(admin) for admin in admins))),
            revision=revision,
            started_at=started_at or _utcnow(),
        )


@dataclass(frozen=True)
class DispatchConfig:
    """Notification rendering settings consumed by the dispatcher."""

    template_name: str = "default.html"
    max_message_bytes: int = 4096
