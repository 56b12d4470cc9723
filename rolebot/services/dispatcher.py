"""Command dispatcher: routes admitted commands to the directory.

The dispatcher is stateless between requests. It is the single place where
directory errors become user-facing text; nothing raised by the directory
escapes ``dispatch``.
"""

from __future__ import annotations

import logging
from typing import Callable

from rolebot.core import messages as msg
from rolebot.core.errors import AppError, UnauthorizedAppError
from rolebot.core.security import AdmissionGate
from rolebot.services.directory import Directory
from rolebot.utils.text_normalizer import normalize_role_name, normalize_text

logger = logging.getLogger(__name__)


def render_error(exc: AppError) -> str:
    """User-facing text for a domain error.

    Only the message is shown in chat; the error code goes to the logs.
    """
    return msg.PREFIX_ERROR.format(exc.message)


def split_args(args: str | None) -> list[str]:
    """Split a command argument string on any whitespace."""
    return (args or "").split()


class CommandDispatcher:
    """Maps (command, arguments, requester) to a response string."""

    def __init__(self, directory: Directory, gate: AdmissionGate) -> None:
        self._directory = directory
        self._gate = gate
        self._handlers: dict[str, Callable[[str], str]] = {
            msg.CMD_PING: self._handle_ping,
            msg.CMD_CREATE_ROLE: self._handle_create_role,
            msg.CMD_REMOVE_ROLE: self._handle_remove_role,
            msg.CMD_ADD_TO_ROLE: self._handle_add_to_role,
            msg.CMD_REMOVE_FROM_ROLE: self._handle_remove_from_role,
            msg.CMD_LIST_ROLES: self._handle_list_roles,
            msg.CMD_LIST_MEMBERS: self._handle_list_members,
            msg.CMD_HELP: lambda _args: msg.HELP_MESSAGE,
            msg.CMD_STATUS: lambda _args: msg.MSG_BOT_HEALTHY,
        }

    def authorize(self, command: str, requester_handle: str | None) -> None:
        """Raise UnauthorizedAppError for a privileged command from a non-admin."""
        if command in msg.ADMIN_COMMANDS and not self._gate.is_admin(requester_handle):
            raise UnauthorizedAppError(
                code="unauthorized",
                message=f"user '{requester_handle or ''}' is not authorized to perform operation '{command}'",
                details={"operation": command, "user": requester_handle or ""},
            )

    def dispatch(self, command: str, args: str | None, requester_handle: str | None) -> str:
        """Handle one admitted command and return the reply text."""
        command = (command or "").lower()

        try:
            self.authorize(command, requester_handle)
        except UnauthorizedAppError:
            logger.warning("dispatch.unauthorized", extra={"command": command, "user": requester_handle})
            return msg.MSG_UNAUTHORIZED

        handler = self._handlers.get(command)
        if handler is None:
            logger.info("dispatch.unknown_command", extra={"command": command})
            return msg.MSG_UNKNOWN_COMMAND

        try:
            return handler(normalize_text(args or ""))
        except AppError as exc:
            logger.warning(
                "dispatch.command_failed",
                extra={"command": command, "error_code": exc.code, "error_message": exc.message},
            )
            return render_error(exc)

    def handle_mention(self, text: str) -> str | None:
        """Ping a role mentioned as ``@role``; None when there is nobody to ping."""
        role = normalize_role_name(text.strip().lstrip("@"))
        if not role:
            return None

        try:
            users = self._directory.get_users_in_role(role)
        except AppError as exc:
            logger.warning(
                "dispatch.mention_failed",
                extra={"role": role, "error_code": exc.code, "error_message": exc.message},
            )
            return render_error(exc)

        if not users:
            return None
        return msg.PREFIX_MENTION.format(role) + _mention_list(users)

    def _handle_ping(self, args: str) -> str:
        if not args:
            return msg.MSG_PONG

        role = normalize_role_name(args)
        users = self._directory.get_users_in_role(role)
        if not users:
            return msg.MSG_NO_USERS_IN_ROLE.format(role)
        return msg.PREFIX_PING.format(role) + _mention_list(users)

    def _handle_create_role(self, args: str) -> str:
        if not args:
            return msg.MSG_PROVIDE_ROLE_NAME
        self._directory.create_role(args)
        return msg.PREFIX_SUCCESS.format(f"Role '{normalize_role_name(args)}' created successfully")

    def _handle_remove_role(self, args: str) -> str:
        if not args:
            return msg.MSG_PROVIDE_ROLE_NAME
        self._directory.remove_role(args)
        return msg.PREFIX_SUCCESS.format(f"Role '{normalize_role_name(args)}' removed successfully")

    def _handle_add_to_role(self, args: str) -> str:
        parts = split_args(args)
        if len(parts) != 2:
            return msg.MSG_USAGE_ADD_TO_ROLE

        role, user = parts
        self._directory.add_user_to_role(role, user)
        return msg.PREFIX_SUCCESS.format(f"User {user} added to role '{normalize_role_name(role)}'")

    def _handle_remove_from_role(self, args: str) -> str:
        parts = split_args(args)
        if len(parts) != 2:
            return msg.MSG_USAGE_REMOVE_FROM_ROLE

        role, user = parts
        self._directory.remove_user_from_role(role, user)
        return msg.PREFIX_SUCCESS.format(f"User {user} removed from role '{normalize_role_name(role)}'")

    def _handle_list_roles(self, _args: str) -> str:
        roles = self._directory.get_all_roles()
        if not roles:
            return msg.MSG_NO_ROLES
        return msg.PREFIX_INFO.format("Roles: " + ", ".join(roles))

    def _handle_list_members(self, args: str) -> str:
        if not args:
            return msg.MSG_PROVIDE_ROLE_NAME

        role = normalize_role_name(args)
        users = self._directory.get_users_in_role(role)
        if not users:
            return msg.MSG_NO_USERS_IN_ROLE.format(role)
        return msg.MSG_USERS_IN_ROLE.format(role, ", ".join(users))


def _mention_list(users: list[str]) -> str:
    return " ".join(f"@{user}" for user in users)
