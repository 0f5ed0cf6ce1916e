"""
Atomic units over an appointment and its doctor's slot calendar.

A unit is a callable doing reads, checks and writes on a session. The
coordinator runs it under the slot's lock, commits on success and rolls back
on any error. Storage conflicts roll back and re-run the unit from the start,
precondition checks included, up to ``BOOKING_MAX_RETRIES`` attempts.
"""

from contextlib import nullcontext
from typing import Callable, Optional, TypeVar
import logging
import random
import time

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.exceptions import BookingError, StorageFailure, TransientConflict
from .locks import SlotKey, get_slot_lock

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACTIVE_SLOT_INDEX = "uq_appointments_active_slot"

_LOCK_CONFLICT_MARKERS = (
    "deadlock detected",
    "database is locked",
    "could not serialize access",
    "lock wait timeout",
)


def as_transient_conflict(exc: SQLAlchemyError) -> Optional[TransientConflict]:
    """Classify a storage error as contention, or return None if it is not."""
    if isinstance(exc, StaleDataError):
        return TransientConflict("Doctor calendar was modified concurrently")

    message = str(getattr(exc, "orig", exc)).lower()
    if isinstance(exc, IntegrityError):
        if ACTIVE_SLOT_INDEX in message or "unique constraint failed: appointments" in message:
            return TransientConflict("Active appointment already exists for slot")
        return None
    if isinstance(exc, OperationalError):
        if any(marker in message for marker in _LOCK_CONFLICT_MARKERS):
            return TransientConflict(f"Storage lock conflict: {message}")
    return None


class SlotCoordinator:
    def __init__(
        self,
        lock=None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        lock_wait_seconds: Optional[float] = None,
    ):
        self.lock = lock if lock is not None else get_slot_lock()
        self.max_retries = max_retries or settings.BOOKING_MAX_RETRIES
        self.backoff_seconds = (
            settings.BOOKING_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self.lock_wait_seconds = lock_wait_seconds or settings.BOOKING_LOCK_WAIT_SECONDS

    def run(self, db: Session, key: Optional[SlotKey], unit: Callable[[], T]) -> T:
        """Run ``unit`` as one committed transaction on ``db``.

        With ``key`` set, the unit runs under that slot's lock. Units that
        only touch a doctor row (``key=None``) rely on the version check alone.
        """
        target = key.lock_name if key is not None else "unkeyed unit"
        guard = self.lock.hold(key, self.lock_wait_seconds) if key is not None else nullcontext()
        with guard:
            attempt = 1
            while True:
                try:
                    result = unit()
                    db.commit()
                    return result
                except BookingError:
                    db.rollback()
                    raise
                except SQLAlchemyError as exc:
                    db.rollback()
                    conflict = as_transient_conflict(exc)
                    if conflict is None:
                        logger.error(f"Storage failure on {target}: {exc}")
                        raise StorageFailure("Storage operation failed") from exc
                    if attempt >= self.max_retries:
                        logger.error(
                            f"Giving up on {target} after {attempt} attempts: {conflict.message}"
                        )
                        raise StorageFailure("Too much contention, please retry") from exc
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"Conflict on {target} (attempt {attempt}/{self.max_retries}): "
                        f"{conflict.message}; retrying in {delay:.3f}s"
                    )
                    time.sleep(delay)
                    attempt += 1
                except BaseException:
                    db.rollback()
                    raise

    def _backoff(self, attempt: int) -> float:
        # Exponential, plus up to the same again in jitter
        base = self.backoff_seconds * (2 ** (attempt - 1))
        return base + random.uniform(0, base)
