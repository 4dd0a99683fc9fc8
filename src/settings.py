"""Configuration loading for alertgram.

All user-editable settings (admins, Alertmanager, webhook listener, storage,
templates, logging) live in a single JSON file for quick edits without touching
Python. Secrets stay in the environment (.env via python-dotenv).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Default location of the JSON config; ALERTGRAM_CONFIG overrides it.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

# Default location of the SQLite database holding subscribers.
DB_PATH = os.path.join(PROJECT_ROOT, "alertgram.db")


@dataclass(frozen=True)
class Settings:
    admins: Tuple[int, ...]
    session_name: str = "alertgram"
    alertmanager_url: str = "http://localhost:9093"
    webhook_host: str = "127.0.0.1"
    webhook_port: int = 8080
    webhook_queue_size: int = 100
    message_queue_size: int = 100
    store_path: str = DB_PATH
    templates_path: Optional[str] = None
    revision: str = "unknown"
    logging: dict = field(default_factory=dict)


def _load_json_config(path: str) -> dict:
    """Load the JSON config with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


def load_settings(path: Optional[str] = None) -> Settings:
    """Read the config file and return validated settings."""

    load_dotenv()
    config = _load_json_config(path or os.getenv("ALERTGRAM_CONFIG") or CONFIG_PATH)

    telegram = config.get("telegram", {})
    admins = tuple(int(admin) for admin in telegram.get("admins", []))
    # Fail fast: without admins every command would be silently dropped.
    if not admins:
        raise RuntimeError("telegram.admins must list at least one Telegram user id")

    alertmanager = config.get("alertmanager", {})
    webhook = config.get("webhook", {})
    store = config.get("store", {})
    templates = config.get("templates", {})

    return Settings(
        admins=admins,
        session_name=telegram.get("session_name") or os.getenv("SESSION_NAME", "alertgram"),
        alertmanager_url=alertmanager.get("url", "http://localhost:9093"),
        webhook_host=webhook.get("host", "127.0.0.1"),
        webhook_port=int(webhook.get("port", 8080)),
        webhook_queue_size=int(webhook.get("queue_size", 100)),
        message_queue_size=int(telegram.get("queue_size", 100)),
        store_path=_resolve_path(store.get("path")) or DB_PATH,
        templates_path=_resolve_path(templates.get("path")),
        revision=str(config.get("revision", "unknown")),
        logging=config.get("logging", {}),
    )
