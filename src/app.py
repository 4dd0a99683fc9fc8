"""Application entry point for the alertgram bot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings as settings_module
from adapters.alertmanager_client import AlertmanagerClient
from adapters.notification_formatting import JinjaTemplateRenderer
from adapters.prometheus_metrics import PrometheusCommandMetrics
from adapters.sqlite_storage import SQLiteKeyValueStore
from adapters.telegram_transport import TelegramTransport
from adapters.webhook_server import create_app, start_server
from client import build_client
from core.commands import CommandSupervisor
from core.config import CommandConfig
from core.dispatcher import NotificationDispatcher
from core.filters import describe_filters
from core.registry import SubscriptionRegistry
from core.supervisor import run_supervised
from settings import Settings

NAME = "ALERTGRAM"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    # Redact BOT_TOKEN and API_HASH unless told otherwise; the token grants full bot control.
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", ["BOT_TOKEN", "API_HASH"]):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    config = config or {}
    # The bot has no other output channel, so logging defaults to on.
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/alertgram.log")
        if not os.path.isabs(path):
            path = os.path.join(settings_module.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO; keep its connection noise out of our logs.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _open_registry(settings: Settings) -> SubscriptionRegistry:
    store = SQLiteKeyValueStore(settings.store_path)
    store.init_db()
    return SubscriptionRegistry(store)


async def _serve(settings: Settings) -> None:
    logger = logging.getLogger(__name__)

    registry = _open_registry(settings)
    renderer = JinjaTemplateRenderer(settings.templates_path)
    metrics = PrometheusCommandMetrics()

    events: asyncio.Queue = asyncio.Queue(maxsize=settings.webhook_queue_size)
    messages: asyncio.Queue = asyncio.Queue(maxsize=settings.message_queue_size)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers.
            pass

    client, bot_token = build_client(settings.session_name)
    transport = TelegramTransport(client)
    await transport.start(bot_token)
    transport.listen(messages)

    runner = await start_server(create_app(events, metrics), settings.webhook_host, settings.webhook_port)
    try:
        async with AlertmanagerClient(settings.alertmanager_url) as alertmanager:
            dispatcher = NotificationDispatcher(registry, transport, renderer)
            commands = CommandSupervisor(
                registry=registry,
                transport=transport,
                alertmanager=alertmanager,
                renderer=renderer,
                metrics=metrics,
                config=CommandConfig.build(settings.admins, revision=settings.revision),
            )
            logger.info("Bot is running. Waiting for webhooks and commands...")
            await run_supervised(dispatcher, commands, events, messages, stop)
    finally:
        await runner.cleanup()
        await transport.disconnect()
        logger.info("Shutdown complete")


def _run(config_path: Optional[str]) -> None:
    _print_banner()
    settings = settings_module.load_settings(config_path)
    _configure_logging(settings.logging)
    logger = logging.getLogger(__name__)

    logger.info("Starting alertgram (revision %s)", settings.revision)
    logger.info("%s admin(s) configured, Alertmanager at %s", len(settings.admins), settings.alertmanager_url)
    asyncio.run(_serve(settings))


async def _list_subscribers(registry: SubscriptionRegistry) -> None:
    subscribers = await registry.list()
    if not subscribers:
        print("No chats are subscribed.")
        return

    for index, subscriber in enumerate(subscribers, start=1):
        filters = describe_filters(subscriber.filter_rules)
        print(f"{index}. {subscriber.display_name} | {subscriber.chat_id} | {filters}")


def _subscribers(config_path: Optional[str]) -> None:
    _print_banner()
    settings = settings_module.load_settings(config_path)
    asyncio.run(_list_subscribers(_open_registry(settings)))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="alertgram")
    parser.add_argument("--config", help="Path to config.json (default: project root)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot and the webhook receiver")
    subparsers.add_parser("subscribers", help="Print the subscribed chats and their filters")

    args = parser.parse_args(argv)
    if args.command == "subscribers":
        _subscribers(args.config)
        return
    _run(args.config)


if __name__ == "__main__":
    main()
