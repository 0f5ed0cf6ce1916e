from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, field_validator

from ..models.appointment import PaymentStatus


def normalize_slot_date(value: str) -> str:
    """Parse a calendar date and return it as YYYY-MM-DD."""
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").strftime("%Y-%m-%d")
    except ValueError:
        raise ValueError("Invalid slot date format. Use YYYY-MM-DD")


def normalize_slot_time(value: str) -> str:
    """Parse a 24h time of day and return it as HH:MM."""
    try:
        return datetime.strptime(value.strip(), "%H:%M").strftime("%H:%M")
    except ValueError:
        raise ValueError("Invalid slot time format. Use HH:MM")


class BookAppointmentRequest(BaseModel):
    doctor_id: int
    slot_date: str
    slot_time: str

    @field_validator("slot_date")
    @classmethod
    def validate_slot_date(cls, value: str) -> str:
        return normalize_slot_date(value)

    @field_validator("slot_time")
    @classmethod
    def validate_slot_time(cls, value: str) -> str:
        return normalize_slot_time(value)


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    slot_date: str
    slot_time: str
    amount: float
    cancelled: bool
    is_completed: bool
    payment: PaymentStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
