"""Bot API client over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from rolebot.adapters.telegram.base import AbstractTransport
from rolebot.core.errors import TransportAppError
from rolebot.schemas.updates import TelegramUpdate

logger = logging.getLogger(__name__)


class TelegramClient(AbstractTransport):
    """Client for the Telegram Bot API ``getUpdates`` / ``sendMessage`` methods.

    Uses a single ``httpx.AsyncClient``; the token is part of the base URL
    and never logged.
    """

    def __init__(
        self,
        token: str,
        *,
        api_base_url: str = "https://api.telegram.org",
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: Bot API token.
            api_base_url: Bot API endpoint.
            timeout_seconds: Request timeout added on top of long-poll timeouts.
            http_client: Preconfigured client (tests pass one with a MockTransport).
        """
        self._timeout_seconds = timeout_seconds
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._base_url = f"{api_base_url.rstrip('/')}/bot{token}"

    async def _call(self, method: str, payload: dict[str, Any], *, timeout: float) -> Any:
        try:
            response = await self._client.post(
                f"{self._base_url}/{method}", json=payload, timeout=timeout
            )
        except httpx.HTTPError as exc:
            raise TransportAppError(
                code="transport_unavailable",
                message=f"Bot API call {method} failed",
                details={"operation": method, "reason": type(exc).__name__},
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportAppError(
                code="transport_bad_response",
                message=f"Bot API call {method} returned invalid JSON",
                details={"operation": method, "context": {"status_code": response.status_code}},
            ) from exc

        if not isinstance(body, dict):
            raise TransportAppError(
                code="transport_bad_response",
                message=f"Bot API call {method} returned a non-object body",
                details={"operation": method, "context": {"status_code": response.status_code}},
            )

        if response.status_code != 200 or not body.get("ok"):
            raise TransportAppError(
                code="transport_api_error",
                message=f"Bot API call {method} was rejected",
                details={
                    "operation": method,
                    "reason": str(body.get("description", "")),
                    "context": {"status_code": response.status_code},
                },
            )
        return body.get("result")

    async def get_updates(self, offset: int | None, timeout: int) -> list[TelegramUpdate]:
        payload: dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset

        result = await self._call(
            "getUpdates", payload, timeout=timeout + self._timeout_seconds
        )

        updates: list[TelegramUpdate] = []
        for raw in result or []:
            try:
                updates.append(TelegramUpdate.model_validate(raw))
            except ValidationError:
                update_id = raw.get("update_id") if isinstance(raw, dict) else None
                logger.warning("transport.update_skipped", extra={"update_id": update_id})
                # Keep the id so the poll offset still moves past it
                if isinstance(update_id, int):
                    updates.append(TelegramUpdate(update_id=update_id))
        return updates

    async def send_message(self, chat_id: int, text: str) -> None:
        await self._call(
            "sendMessage",
            {"chat_id": chat_id, "text": text},
            timeout=self._timeout_seconds,
        )
        logger.debug("transport.message_sent", extra={"chat_id": chat_id})

    async def aclose(self) -> None:
        await self._client.aclose()
