"""Inbound event loop: transport -> admission gate -> dispatcher -> transport.

Each update is handled in order. Directory work runs in the default thread
pool under ``asyncio.wait_for`` so a slow database cannot stall the loop past
the configured handler timeout.
"""

from __future__ import annotations

import asyncio
import logging

from rolebot.adapters.telegram.base import AbstractTransport
from rolebot.core.errors import (
    AppError,
    ChatNotAllowedAppError,
    RateLimitedAppError,
    StorageAppError,
    TransportAppError,
)
from rolebot.core.logging import clear_correlation_id, set_correlation_id
from rolebot.core.security import AdmissionGate
from rolebot.schemas.updates import InboundMessage
from rolebot.services.dispatcher import CommandDispatcher, render_error

logger = logging.getLogger(__name__)

# Rejections that produce no reply to the chat
_SILENT_REJECTIONS = (RateLimitedAppError, ChatNotAllowedAppError)


class BotService:
    """Polls the transport and answers each admitted message at most once."""

    def __init__(
        self,
        *,
        transport: AbstractTransport,
        gate: AdmissionGate,
        dispatcher: CommandDispatcher,
        poll_timeout: int = 60,
        handler_timeout_seconds: float = 15.0,
        retry_delay_seconds: float = 3.0,
    ) -> None:
        self._transport = transport
        self._gate = gate
        self._dispatcher = dispatcher
        self._poll_timeout = poll_timeout
        self._handler_timeout_seconds = handler_timeout_seconds
        self._retry_delay_seconds = retry_delay_seconds
        self._offset: int | None = None

    async def _respond(self, event: InboundMessage) -> str | None:
        """Compute the reply for an admitted event without blocking the loop."""
        loop = asyncio.get_running_loop()

        if event.is_command:
            call = (
                self._dispatcher.dispatch,
                event.command_name,
                event.command_arguments,
                event.requester_handle,
            )
        elif event.is_mention:
            call = (self._dispatcher.handle_mention, event.message_text)
        else:
            return None

        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, *call),
                timeout=self._handler_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "bot.handler_timeout",
                extra={
                    "command": event.command_name,
                    "timeout_seconds": self._handler_timeout_seconds,
                },
            )
            return render_error(
                StorageAppError(
                    code="storage_timeout",
                    message="storage did not respond in time",
                    details={"operation": event.command_name or "mention"},
                )
            )

    async def handle_event(self, event: InboundMessage) -> str | None:
        """Admit, dispatch and reply to one inbound event.

        Returns:
            The text sent to the chat, or None when nothing was sent.
        """
        try:
            self._gate.validate_message(event.requester_id, event.chat_id, event.message_text)
        except _SILENT_REJECTIONS:
            return None
        except AppError as exc:
            reply: str | None = render_error(exc)
        else:
            logger.debug(
                "bot.message_received",
                extra={
                    "requester_id": event.requester_id,
                    "chat_id": event.chat_id,
                    "command": event.command_name,
                    "message_text": event.message_text,
                },
            )
            reply = await self._respond(event)

        if not reply:
            return None

        try:
            await self._transport.send_message(event.chat_id, reply)
        except TransportAppError as exc:
            logger.error(
                "bot.send_failed",
                extra={"chat_id": event.chat_id, "error_code": exc.code, "error_message": exc.message},
            )
            return None
        return reply

    async def poll_once(self) -> int:
        """Fetch one batch of updates and handle them.

        Returns:
            Number of updates received.
        """
        updates = await self._transport.get_updates(self._offset, self._poll_timeout)

        for update in updates:
            self._offset = update.update_id + 1
            event = update.to_inbound()
            if event is None:
                continue

            set_correlation_id(f"update-{update.update_id}")
            try:
                await self.handle_event(event)
            except Exception:
                logger.exception("bot.update_failed", extra={"update_id": update.update_id})
            finally:
                clear_correlation_id()

        return len(updates)

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Poll until ``stop_event`` is set or the task is cancelled."""
        stop_event = stop_event or asyncio.Event()
        logger.info("bot.started", extra={"poll_timeout": self._poll_timeout})

        while not stop_event.is_set():
            poll = asyncio.ensure_future(self.poll_once())
            stopper = asyncio.ensure_future(stop_event.wait())
            try:
                done, _ = await asyncio.wait({poll, stopper}, return_when=asyncio.FIRST_COMPLETED)
            except asyncio.CancelledError:
                poll.cancel()
                raise
            finally:
                stopper.cancel()

            if poll not in done:
                poll.cancel()
                await asyncio.gather(poll, return_exceptions=True)
                break

            exc = poll.exception()
            if isinstance(exc, TransportAppError):
                logger.warning(
                    "bot.poll_failed",
                    extra={"error_code": exc.code, "retry_in_s": self._retry_delay_seconds},
                )
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._retry_delay_seconds)
                except asyncio.TimeoutError:
                    pass
            elif exc is not None:
                raise exc

        logger.info("bot.stopped")
