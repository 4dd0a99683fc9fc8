"""Prometheus metrics adapter.

Counters are registered on an injected CollectorRegistry instead of the
process-wide default so several instances (and tests) never collide.
"""

from __future__ import annotations

from typing import Iterable, Optional

from prometheus_client import CollectorRegistry, Counter, generate_latest

NAMESPACE = "alertgram"


class PrometheusCommandMetrics:
    """MetricsPort implementation plus the webhook counter."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()
        self._commands = Counter(
            "commands_total",
            "Number of commands received by command name",
            ["command"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self._webhooks = Counter(
            "webhooks_total",
            "Number of webhooks received by this bot",
            namespace=NAMESPACE,
            registry=self.registry,
        )

    def initialize(self, names: Iterable[str]) -> None:
        """Export every known command with a zero count from the start."""

        for name in names:
            self._commands.labels(command=name).inc(0)

    def increment(self, name: str) -> None:
        self._commands.labels(command=name).inc()

    def observe_webhook(self) -> None:
        self._webhooks.inc()

    def exposition(self) -> bytes:
        return generate_latest(self.registry)
