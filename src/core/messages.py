"""Canned replies and message size enforcement."""

from __future__ import annotations

import logging

LOGGER = logging.getLogger(__name__)

# Telegram accepts at most 4096 bytes per message.
MAX_MESSAGE_BYTES = 4096
SNIP_MARKER = "\n<b>[SNIP]</b>"
TOO_LONG_NOTICE = "Message is too long... can't send.."

RESPONSE_START = "Hey, {name}! I will now keep you up to date!\nEnabled filters: {filters}\n/help"
RESPONSE_STOP = "Alright, {name}! I won't talk to you again.\n/help"
RESPONSE_INCOMPREHENSIBLE = "Sorry, I don't understand..."
RESPONSE_NO_ALERTS = "No alerts right now! 🎉"
RESPONSE_NO_SILENCES = "No silences right now."
RESPONSE_CHATS_HEADER = "Currently these chat have subscribed:\n\n"
RESPONSE_ADD_FAILED = "I can't add this chat to the subscribers list."
RESPONSE_REMOVE_FAILED = "I can't remove this chat from the subscribers list."
RESPONSE_LIST_FAILED = "I can't list the subscribed chats."
RESPONSE_FILTERS_FAILED = "I can't get current filters."

RESPONSE_FILTERS = """
You can set filters by passing arguments for /start command.

Default: no arguments, send all alerts.
All labels not passed as arguments - are allowed by default.
Multiple labels can be passed as an argument.
Arguments separated by whitespace.
Each argument allow alerts containing the label with some value.

Examples:
/start x=test - allow label 'x' only with value 'test'
/start a=x=y=z - allow label 'a' with any value from 'x,y,z'
/start key=_ - allow label 'key' omitted
/start key=* - allow label 'key' with any value
/start key=!x - deny all (use ! only with other operators)
/start key=!x=* - allow label 'key' with any value except 'x'
/start key=!x=*=_ - allow ALL except label 'key' with value 'x'
/start key=a env=b - allow both labels 'key' and 'env' with corresponding values
"""

RESPONSE_HELP = """
I'm a Prometheus AlertManager Bot for Telegram. I will notify you about alerts.
You can also ask me about my /status, /alerts & /silences

Available commands:
/start [label=values ...] - Subscribe for alerts and set filters.
/stop - Unsubscribe for alerts.
/status - Print the current status.
/alerts - List all alerts.
/silences - List all silences.
/chats - List all users and group chats that subscribed.
/filters - List more info about filters.
"""


def truncate_message(text: str, limit: int = MAX_MESSAGE_BYTES) -> str:
    """Fit ``text`` into ``limit`` UTF-8 bytes without breaking HTML markup.

    Oversized messages are cut at the last paragraph break (the end of the
    last complete alert) and marked; without such a break a fixed notice is
    returned instead.
    """

    encoded = text.encode("utf-8")
    if len(encoded) <= limit:
        return text

    LOGGER.warning("Message is %s bytes, bigger than %s, truncating", len(encoded), limit)
    cutoff = limit - len(SNIP_MARKER.encode("utf-8"))
    boundary = encoded.rfind(b"\n\n", 0, cutoff)
    if boundary <= 0:
        LOGGER.warning("Unable to find the end of the last alert, dropping message")
        return TOO_LONG_NOTICE
    return encoded[:boundary].decode("utf-8") + SNIP_MARKER
