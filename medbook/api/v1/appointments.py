from fastapi import APIRouter, Depends, status

from ...api.deps import (
    get_admin_user, get_current_user, get_patient_user, get_reservation_service
)
from ...core.exceptions import Forbidden
from ...core.security import UserRole
from ...models.user import User
from ...schemas.appointment import (
    AppointmentListResponse, AppointmentResponse, BookAppointmentRequest
)
from ...services.reservation_service import ReservationService

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    booking: BookAppointmentRequest,
    current_user: User = Depends(get_patient_user),
    service: ReservationService = Depends(get_reservation_service)
):
    """Book a slot with a doctor for the current user."""
    appointment = service.book_slot(
        current_user.id, booking.doctor_id, booking.slot_date, booking.slot_time
    )
    return AppointmentResponse.model_validate(appointment)

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service)
):
    """Cancel one of the current user's appointments."""
    appointment = service.cancel_appointment(current_user.id, appointment_id)
    return AppointmentResponse.model_validate(appointment)

@router.get("", response_model=AppointmentListResponse)
def list_my_appointments(
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service)
):
    """List the current user's appointments, newest first."""
    appointments = service.list_for_patient(current_user.id)
    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in appointments]
    )

@router.get("/all", response_model=AppointmentListResponse)
def list_all_appointments(
    _: User = Depends(get_admin_user),
    service: ReservationService = Depends(get_reservation_service)
):
    """List every appointment, newest first (admin only)."""
    appointments = service.list_all()
    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in appointments]
    )

@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service)
):
    """Get an appointment (owner or admin only)."""
    appointment = service.get_appointment(appointment_id)
    if appointment.patient_id != current_user.id and current_user.role != UserRole.ADMIN:
        raise Forbidden()
    return AppointmentResponse.model_validate(appointment)
