"""
Per-slot mutexes.

Every reservation and cancellation runs under the lock of its
``(doctor_id, slot_date, slot_time)`` key, so the check-then-act on one slot
is never interleaved. Different keys use different locks and never wait on
each other. Two backends are provided: an in-process lock table for a single
worker process, and a Redis lock shared by every worker.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional
import logging
import threading

import redis
from redis.exceptions import LockError, RedisError

from ..core.config import settings
from ..core.database import get_redis
from ..core.exceptions import StorageFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotKey:
    doctor_id: int
    slot_date: str
    slot_time: str

    @property
    def lock_name(self) -> str:
        return f"medbook:slot-lock:{self.doctor_id}:{self.slot_date}:{self.slot_time}"


class LocalSlotLock:
    """Lock table for a single process; entries are dropped once unused."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}  # name -> [lock, holders + waiters]

    @contextmanager
    def hold(self, key: SlotKey, wait_seconds: float) -> Iterator[None]:
        name = key.lock_name
        with self._guard:
            entry = self._locks.setdefault(name, [threading.Lock(), 0])
            entry[1] += 1
        try:
            if not entry[0].acquire(timeout=wait_seconds):
                logger.error(f"Timed out waiting {wait_seconds}s for slot lock {name}")
                raise StorageFailure("Timed out waiting for slot lock")
            try:
                yield
            finally:
                entry[0].release()
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(name, None)

    def __len__(self):
        return len(self._locks)


class RedisSlotLock:
    """Distributed slot lock built on redis-py's ``Lock``.

    The lock expires after ``ttl_seconds`` so a crashed worker cannot block a
    slot forever. If Redis itself is unreachable the operation proceeds
    unlocked: the database version check and the active-slot unique index
    still reject a double booking, at the cost of more retries.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: Optional[int] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds or settings.BOOKING_LOCK_TTL_SECONDS

    @contextmanager
    def hold(self, key: SlotKey, wait_seconds: float) -> Iterator[None]:
        lock = self.client.lock(
            key.lock_name,
            timeout=self.ttl_seconds,
            blocking_timeout=wait_seconds,
        )
        try:
            acquired = lock.acquire()
        except RedisError as exc:
            logger.warning(f"Slot lock unavailable for {key.lock_name}, continuing unlocked: {exc}")
            yield
            return

        if not acquired:
            logger.error(f"Timed out waiting {wait_seconds}s for slot lock {key.lock_name}")
            raise StorageFailure("Timed out waiting for slot lock")

        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # Expired while held; the TTL is shorter than the operation
                logger.warning(f"Slot lock {key.lock_name} expired before release")
            except RedisError as exc:
                logger.warning(f"Failed to release slot lock {key.lock_name}: {exc}")


_local_lock = LocalSlotLock()


def get_slot_lock():
    """Return the lock backend selected by ``BOOKING_LOCK_BACKEND``."""
    if settings.BOOKING_LOCK_BACKEND == "redis":
        return RedisSlotLock(get_redis())
    return _local_lock
