from typing import Dict, List, Optional
from pydantic import BaseModel


class DoctorResponse(BaseModel):
    id: int
    name: str
    speciality: str
    available: bool
    fees: Optional[float] = None
    slots_booked: Dict[str, List[str]] = {}

    class Config:
        from_attributes = True


class SlotAvailabilityResponse(BaseModel):
    doctor_id: int
    slot_date: str
    booked_times: List[str]
    slot_time: Optional[str] = None
    is_booked: Optional[bool] = None


class AvailabilityToggleResponse(BaseModel):
    doctor_id: int
    available: bool
    message: str
