"""Tests for the inbound event loop."""

import asyncio
import time
from unittest.mock import Mock

import pytest

from rolebot.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from rolebot.adapters.telegram.base import AbstractTransport
from rolebot.core import messages as msg
from rolebot.core.errors import TransportAppError
from rolebot.core.security import AdmissionGate
from rolebot.schemas.updates import InboundMessage, TelegramUpdate
from rolebot.services.bot import BotService
from rolebot.services.dispatcher import CommandDispatcher


class FakeTransport(AbstractTransport):
    """Serves queued update batches and records outbound messages."""

    def __init__(self, batches=None, *, idle_delay: float = 0.01) -> None:
        self.batches = list(batches or [])
        self.offsets: list[int | None] = []
        self.sent: list[tuple[int, str]] = []
        self.idle_delay = idle_delay
        self.fail_polls = 0
        self.fail_sends = False

    async def get_updates(self, offset, timeout):
        self.offsets.append(offset)
        if self.fail_polls:
            self.fail_polls -= 1
            raise TransportAppError(code="transport_unavailable", message="down")
        if self.batches:
            return self.batches.pop(0)
        await asyncio.sleep(self.idle_delay)
        return []

    async def send_message(self, chat_id, text):
        if self.fail_sends:
            raise TransportAppError(code="transport_api_error", message="rejected")
        self.sent.append((chat_id, text))


def _update(update_id: int, text: str, *, user_id: int = 1, username: str = "admin", chat_id: int = -100) -> TelegramUpdate:
    return TelegramUpdate.model_validate(
        {
            "update_id": update_id,
            "message": {
                "message_id": update_id,
                "from": {"id": user_id, "is_bot": False, "username": username},
                "chat": {"id": chat_id, "type": "group"},
                "text": text,
            },
        }
    )


def _event(text: str, **kwargs) -> InboundMessage:
    return _update(1, text, **kwargs).to_inbound()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def bot(transport: FakeTransport, gate: AdmissionGate, dispatcher: CommandDispatcher) -> BotService:
    return BotService(
        transport=transport,
        gate=gate,
        dispatcher=dispatcher,
        poll_timeout=0,
        handler_timeout_seconds=5.0,
        retry_delay_seconds=0.01,
    )


class TestHandleEvent:
    @pytest.mark.asyncio
    async def test_command_reply_is_sent_once(self, bot: BotService, transport: FakeTransport) -> None:
        reply = await bot.handle_event(_event("/createrole ops"))

        assert reply == "✅ Role 'ops' created successfully"
        assert transport.sent == [(-100, reply)]

    @pytest.mark.asyncio
    async def test_mention_with_members(self, bot: BotService, transport: FakeTransport) -> None:
        await bot.handle_event(_event("/createrole ops"))
        await bot.handle_event(_event("/addtorole ops alice"))
        transport.sent.clear()

        await bot.handle_event(_event("@ops", username="someone", user_id=2))

        assert transport.sent == [(-100, "Pinging role @ops: @alice")]

    @pytest.mark.asyncio
    async def test_mention_without_members_sends_nothing(self, bot: BotService, transport: FakeTransport) -> None:
        assert await bot.handle_event(_event("@nobody")) is None
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_plain_text_is_ignored(self, bot: BotService, transport: FakeTransport) -> None:
        assert await bot.handle_event(_event("hello there")) is None
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_rate_limited_requests_are_dropped_silently(
        self, bot: BotService, transport: FakeTransport
    ) -> None:
        for _ in range(5):
            await bot.handle_event(_event("/status", username="u", user_id=9))
        assert len(transport.sent) == 5

        assert await bot.handle_event(_event("/status", username="u", user_id=9)) is None
        assert len(transport.sent) == 5

    @pytest.mark.asyncio
    async def test_disallowed_chat_is_dropped_silently(
        self, transport: FakeTransport, dispatcher: CommandDispatcher
    ) -> None:
        limiter = InMemorySlidingWindowRateLimiter(limit=5, window_seconds=60)
        gate = AdmissionGate(limiter=limiter, admin_username="admin", allowed_chats={-1})
        bot = BotService(transport=transport, gate=gate, dispatcher=dispatcher)

        assert await bot.handle_event(_event("/status", chat_id=-100)) is None
        assert transport.sent == []

        assert await bot.handle_event(_event("/status", chat_id=-1)) == msg.MSG_BOT_HEALTHY

    @pytest.mark.asyncio
    async def test_oversized_message_gets_error_reply(self, bot: BotService, transport: FakeTransport) -> None:
        reply = await bot.handle_event(_event("/ping " + "x" * 5000))

        assert reply == "❌ Error: invalid message: message too long"
        assert transport.sent == [(-100, reply)]

    @pytest.mark.asyncio
    async def test_unauthorized_reply(self, bot: BotService, transport: FakeTransport) -> None:
        await bot.handle_event(_event("/removerole ops", username="mallory", user_id=3))

        assert transport.sent == [(-100, msg.MSG_UNAUTHORIZED)]

    @pytest.mark.asyncio
    async def test_send_failure_is_contained(self, bot: BotService, transport: FakeTransport) -> None:
        transport.fail_sends = True

        assert await bot.handle_event(_event("/status")) is None

    @pytest.mark.asyncio
    async def test_slow_handler_replies_with_timeout_error(
        self, transport: FakeTransport, gate: AdmissionGate
    ) -> None:
        slow_dispatcher = Mock(spec=CommandDispatcher)
        slow_dispatcher.dispatch.side_effect = lambda *args: time.sleep(0.5) or "late"
        bot = BotService(
            transport=transport,
            gate=gate,
            dispatcher=slow_dispatcher,
            handler_timeout_seconds=0.05,
        )

        started = time.perf_counter()
        reply = await bot.handle_event(_event("/status"))

        assert time.perf_counter() - started < 0.4
        assert reply == "❌ Error: storage did not respond in time"
        assert transport.sent == [(-100, reply)]


class TestPolling:
    @pytest.mark.asyncio
    async def test_offset_advances_past_handled_updates(self, bot: BotService, transport: FakeTransport) -> None:
        transport.batches = [[_update(5, "/status"), _update(6, "/ping")]]

        assert await bot.poll_once() == 2
        await bot.poll_once()

        assert transport.offsets == [None, 7]
        assert [text for _, text in transport.sent] == [msg.MSG_BOT_HEALTHY, msg.MSG_PONG]

    @pytest.mark.asyncio
    async def test_updates_without_message_are_skipped(self, bot: BotService, transport: FakeTransport) -> None:
        transport.batches = [[TelegramUpdate(update_id=10)]]

        assert await bot.poll_once() == 1
        assert transport.sent == []
        await bot.poll_once()
        assert transport.offsets[-1] == 11

    @pytest.mark.asyncio
    async def test_run_stops_on_event(self, bot: BotService, transport: FakeTransport) -> None:
        transport.batches = [[_update(1, "/status")]]
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.1, stop.set)

        await asyncio.wait_for(bot.run(stop), timeout=2)

        assert transport.sent == [(-100, msg.MSG_BOT_HEALTHY)]

    @pytest.mark.asyncio
    async def test_run_interrupts_long_poll(self, bot: BotService, transport: FakeTransport) -> None:
        transport.idle_delay = 30
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, stop.set)

        await asyncio.wait_for(bot.run(stop), timeout=2)

    @pytest.mark.asyncio
    async def test_run_retries_after_transport_failure(self, bot: BotService, transport: FakeTransport) -> None:
        transport.fail_polls = 2
        transport.batches = [[_update(3, "/ping")]]
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.2, stop.set)

        await asyncio.wait_for(bot.run(stop), timeout=2)

        assert transport.sent == [(-100, msg.MSG_PONG)]
