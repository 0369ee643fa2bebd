"""
Keyed Lock Protocol (Abstract Interface)
Contract for mutual exclusion keyed by resource identity
"""
from __future__ import annotations

from typing import AsyncContextManager, Optional, Protocol


class LockUnavailableError(Exception):
    """Raised when a keyed lock could not be acquired within the allowed wait."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Lock '{key}' is held by another operation")
        self.key = key


class IKeyedLocks(Protocol):
    """
    Mutual exclusion keyed by an arbitrary string (e.g. "instance:<uuid>").

    Different keys never contend with each other.
    """

    def hold(self, key: str, *, wait: Optional[float] = None) -> AsyncContextManager[None]:
        """
        Hold the lock for `key` for the duration of the context.

        Args:
            key: Resource key
            wait: 0 to fail immediately when contended, a number of seconds
                  to queue for at most that long, None to queue indefinitely

        Raises:
            LockUnavailableError: If the lock could not be acquired in time
        """
        ...
