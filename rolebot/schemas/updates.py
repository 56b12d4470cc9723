from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    """Sender of a message (subset of the Bot API ``User`` object)."""

    model_config = ConfigDict(extra="ignore")

    id: int
    is_bot: bool = False
    username: str | None = None
    first_name: str | None = None


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: str | None = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    from_user: TelegramUser | None = Field(None, alias="from")
    chat: TelegramChat
    text: str | None = None


class TelegramUpdate(BaseModel):
    """One entry of a ``getUpdates`` result."""

    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: TelegramMessage | None = None

    def to_inbound(self) -> "InboundMessage | None":
        """Flatten a text message update; None for updates the bot ignores."""
        message = self.message
        if message is None or message.from_user is None:
            return None

        text = message.text or ""
        command_name, command_arguments = parse_command(text)
        return InboundMessage(
            update_id=self.update_id,
            requester_id=message.from_user.id,
            requester_handle=message.from_user.username or "",
            chat_id=message.chat.id,
            message_text=text,
            command_name=command_name,
            command_arguments=command_arguments,
        )


class InboundMessage(BaseModel):
    """Inbound event as seen by the admission gate and the dispatcher."""

    update_id: int
    requester_id: int
    requester_handle: str = ""
    chat_id: int
    message_text: str = ""
    command_name: str | None = None
    command_arguments: str = ""

    @property
    def is_command(self) -> bool:
        return self.command_name is not None

    @property
    def is_mention(self) -> bool:
        return not self.is_command and self.message_text.startswith("@")


def parse_command(text: str) -> tuple[str | None, str]:
    """Split ``/name@bot args`` into ("name", "args").

    Returns (None, "") when the text is not a command.

    Examples:
        >>> parse_command("/addtorole ops alice")
        ('addtorole', 'ops alice')
        >>> parse_command("/ping@RoleBot")
        ('ping', '')
        >>> parse_command("hello")
        (None, '')
    """
    if not text.startswith("/"):
        return None, ""

    parts = text.split(maxsplit=1)
    name = parts[0][1:].split("@", 1)[0].lower()
    if not name:
        return None, ""
    rest = parts[1] if len(parts) > 1 else ""
    return name, rest.strip()
