"""
Booking error taxonomy.

Business-rule errors are reported to the caller as-is and never retried.
``TransientConflict`` is raised by the storage layer on contention and is
consumed by the slot coordinator; callers only ever see ``StorageFailure``
once the retry bound is exhausted.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for errors raised by the booking core."""

    code = "booking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(BookingError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: Optional[object] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found")


class Unavailable(BookingError):
    code = "doctor_unavailable"

    def __init__(self, doctor_id: int):
        self.doctor_id = doctor_id
        super().__init__("Doctor is not available")


class SlotTaken(BookingError):
    code = "slot_taken"

    def __init__(self, doctor_id: int, slot_date: str, slot_time: str):
        self.doctor_id = doctor_id
        self.slot_date = slot_date
        self.slot_time = slot_time
        super().__init__("Slot is not available")


class Forbidden(BookingError):
    code = "forbidden"

    def __init__(self, message: str = "Unauthorized action"):
        super().__init__(message)


class TransientConflict(BookingError):
    code = "transient_conflict"


class StorageFailure(BookingError):
    code = "storage_failure"
