"""Application-level exception types.

This module defines domain errors used across the directory, the admission
gate and the adapters, enabling consistent error handling, logging and
user-facing rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability.

    Fields are optional to keep shapes flexible while encouraging
    consistent keys across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    value: str
    reason: str
    entity: str
    role: str
    user: str
    requester_id: int
    chat_id: int
    operation: str
    retry_after: float
    max_value: int
    actual_value: int
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class InvalidInputAppError(AppError):
    """Raised when a field is empty, oversized or malformed."""


class NotFoundAppError(AppError):
    """Raised when a role, user or membership edge does not exist.

    ``details["entity"]`` tells which one was missing ("role", "user" or "membership").
    """


class AlreadyExistsAppError(AppError):
    """Raised when creating a role whose normalized name is taken."""


class RateLimitedAppError(AppError):
    """Raised when a requester exceeded its sliding-window budget."""


class ChatNotAllowedAppError(AppError):
    """Raised when a message arrives from a chat outside the allow-list."""


class UnauthorizedAppError(AppError):
    """Raised when a non-admin attempts a privileged command."""


class StorageAppError(AppError):
    """Raised when the underlying database fails; wraps the cause."""


class TransportAppError(AppError):
    """Raised when the Bot API transport fails."""
