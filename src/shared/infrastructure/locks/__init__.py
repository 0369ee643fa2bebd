from .lock_protocol import IKeyedLocks, LockUnavailableError
from .memory_lock import InMemoryKeyedLocks
from .redis_lock import RedisKeyedLocks
from .reservations import (
    IPendingReservations,
    InMemoryPendingReservations,
    RedisPendingReservations,
)

__all__ = [
    "IKeyedLocks",
    "LockUnavailableError",
    "InMemoryKeyedLocks",
    "RedisKeyedLocks",
    "IPendingReservations",
    "InMemoryPendingReservations",
    "RedisPendingReservations",
]
