"""Transport adapter layer - abstracts over the chat transport."""

from rolebot.adapters.telegram.base import AbstractTransport
from rolebot.adapters.telegram.client import TelegramClient

__all__ = [
    "AbstractTransport",
    "TelegramClient",
]
