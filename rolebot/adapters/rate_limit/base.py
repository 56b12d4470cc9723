"""Rate limiter interfaces.

The admission gate depends on this abstraction (not the concrete
implementation) so storage backends can be swapped with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Hashable


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a consume operation.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max requests per trailing window.
        remaining: Slots left in the window after this call (0 when blocked).
        reset_at: Limiter clock time (seconds) when the oldest counted request expires.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(self, key: Hashable) -> RateLimitResult:
        """Record one request for ``key`` if it is within budget.

        Args:
            key: Requester identity (e.g., Telegram user id).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError
