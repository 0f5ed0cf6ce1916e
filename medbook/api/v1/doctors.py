from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional

from ...api.deps import get_admin_user, get_reservation_service
from ...core.database import get_db
from ...models.user import User
from ...schemas.appointment import normalize_slot_date, normalize_slot_time
from ...schemas.doctor import (
    AvailabilityToggleResponse, DoctorResponse, SlotAvailabilityResponse
)
from ...services.doctor_service import DoctorService
from ...services.reservation_service import ReservationService

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorResponse])
def list_doctors(db: Session = Depends(get_db)):
    """List doctors with their availability, fees and booked slots."""
    return [DoctorResponse.model_validate(d) for d in DoctorService(db).list_doctors()]

@router.get("/{doctor_id}/slots", response_model=SlotAvailabilityResponse)
def get_booked_slots(
    doctor_id: int,
    slot_date: str = Query(..., description="YYYY-MM-DD"),
    slot_time: Optional[str] = Query(None, description="HH:MM"),
    service: ReservationService = Depends(get_reservation_service)
):
    """Booked times for a date; with slot_time, whether that slot is taken."""
    try:
        slot_date = normalize_slot_date(slot_date)
        if slot_time is not None:
            slot_time = normalize_slot_time(slot_time)
    except ValueError as e:
        raise HTTPException(
            status_code=422,
            detail=str(e)
        )

    booked = service.booked_times(doctor_id, slot_date)
    return SlotAvailabilityResponse(
        doctor_id=doctor_id,
        slot_date=slot_date,
        booked_times=sorted(booked),
        slot_time=slot_time,
        is_booked=(slot_time in booked) if slot_time is not None else None,
    )

@router.post("/{doctor_id}/availability", response_model=AvailabilityToggleResponse)
def change_availability(
    doctor_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """Toggle whether a doctor accepts bookings (admin only)."""
    doctor = DoctorService(db).toggle_availability(doctor_id)
    return AvailabilityToggleResponse(
        doctor_id=doctor.id,
        available=doctor.available,
        message=f"Doctor {'made available' if doctor.available else 'made unavailable'} successfully"
    )
