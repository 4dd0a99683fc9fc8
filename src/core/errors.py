"""Error taxonomy shared by the core and its adapters.

Adapters translate library exceptions into these so the core loops only ever
catch ``AlertgramError`` subclasses for expected failures.
"""

from __future__ import annotations


class AlertgramError(Exception):
    """Base class for all expected alertgram failures."""


class StoreUnavailable(AlertgramError):
    """The backing key-value store cannot be reached."""


class EncodingError(AlertgramError):
    """A subscriber record could not be serialized or deserialized."""


class TransportError(AlertgramError):
    """Sending to or receiving from the chat platform failed."""


class UpstreamError(AlertgramError):
    """A call to the Alertmanager API failed."""


class TemplateError(AlertgramError):
    """A message template failed to render."""


class Unauthorized(AlertgramError):
    """The sender of a chat message is not an admin."""
