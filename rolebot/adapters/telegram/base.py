from abc import ABC, abstractmethod

from rolebot.schemas.updates import TelegramUpdate


class AbstractTransport(ABC):
    """Interface for chat transports that deliver updates and send replies."""

    @abstractmethod
    async def get_updates(self, offset: int | None, timeout: int) -> list[TelegramUpdate]:
        """Long-poll for updates newer than ``offset``.

        Args:
            offset: First update id to return, or None for all pending updates.
            timeout: Long-poll timeout in seconds.

        Returns:
            list[TelegramUpdate]: Updates in arrival order (possibly empty).

        Raises:
            TransportAppError: If the transport call fails.
        """
        ...

    @abstractmethod
    async def send_message(self, chat_id: int, text: str) -> None:
        """Send ``text`` to ``chat_id``.

        Raises:
            TransportAppError: If the message could not be delivered.
        """
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
