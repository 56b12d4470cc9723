"""Admission gate for inbound messages.

Every inbound message passes, in this order:
1. Chat allow-list (only when one is configured)
2. Per-user sliding-window rate limit
3. Message length limit

The gate owns its rate limiter; nothing else reads or mutates the windows.
"""

from __future__ import annotations

import logging
from typing import Iterable

from rolebot.adapters.rate_limit.base import AbstractRateLimiter
from rolebot.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from rolebot.core.config import SecuritySettings
from rolebot.core.errors import (
    ChatNotAllowedAppError,
    InvalidInputAppError,
    RateLimitedAppError,
)

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 4000


class AdmissionGate:
    """Chat allow-list, rate limit and length checks plus the admin predicate."""

    def __init__(
        self,
        *,
        limiter: AbstractRateLimiter,
        admin_username: str,
        allowed_chats: Iterable[int] | None = None,
        max_message_chars: int = MAX_MESSAGE_CHARS,
    ) -> None:
        self._limiter = limiter
        self._admin_username = admin_username.strip().lstrip("@")
        self._allowed_chats = frozenset(allowed_chats or ())
        self._max_message_chars = max_message_chars

    @classmethod
    def from_settings(cls, security: SecuritySettings) -> "AdmissionGate":
        """Build a gate with its own sliding-window limiter from settings."""
        limiter = InMemorySlidingWindowRateLimiter(
            limit=security.rate_limit_per_min,
            window_seconds=security.rate_limit_window_seconds,
        )
        return cls(
            limiter=limiter,
            admin_username=security.admin_username,
            allowed_chats=security.allowed_chat_ids,
            max_message_chars=security.max_message_chars,
        )

    def is_chat_allowed(self, chat_id: int) -> bool:
        return not self._allowed_chats or chat_id in self._allowed_chats

    def validate_message(self, requester_id: int, chat_id: int, text: str | None) -> None:
        """Admit or reject one inbound message.

        Args:
            requester_id: Telegram user id of the sender.
            chat_id: Chat the message was posted in.
            text: Raw message text (may be empty for non-text messages).

        Raises:
            ChatNotAllowedAppError: Chat is outside a non-empty allow-list.
            RateLimitedAppError: Sender exhausted its budget for the window.
            InvalidInputAppError: Message is longer than the maximum length.
        """
        if not self.is_chat_allowed(chat_id):
            logger.warning("admission.chat_not_allowed", extra={"chat_id": chat_id})
            raise ChatNotAllowedAppError(
                code="chat_not_allowed",
                message=f"chat {chat_id} is not allowed",
                details={"chat_id": chat_id},
            )

        result = self._limiter.consume(requester_id)
        if not result.allowed:
            logger.warning(
                "admission.rate_limited",
                extra={
                    "requester_id": requester_id,
                    "limit": result.limit,
                    "retry_after_s": result.retry_after_seconds,
                },
            )
            raise RateLimitedAppError(
                code="rate_limited",
                message=f"rate limit exceeded for user {requester_id}",
                details={
                    "requester_id": requester_id,
                    "retry_after": float(result.retry_after_seconds or 0),
                },
            )

        length = len((text or "").strip())
        if length > self._max_message_chars:
            logger.warning(
                "admission.message_too_long",
                extra={"requester_id": requester_id, "length": length},
            )
            raise InvalidInputAppError(
                code="message_too_long",
                message="invalid message: message too long",
                details={
                    "field": "message",
                    "reason": "message too long",
                    "max_value": self._max_message_chars,
                    "actual_value": length,
                },
            )

        logger.debug(
            "admission.allowed",
            extra={"requester_id": requester_id, "remaining": result.remaining},
        )

    def is_admin(self, identity: str | None) -> bool:
        """True when ``identity`` is the configured admin username."""
        if not identity or not self._admin_username:
            return False
        return identity.strip().lstrip("@") == self._admin_username
