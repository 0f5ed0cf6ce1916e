from sqlalchemy.orm import Session
from typing import List, Optional, Set
import logging

from ..core.config import settings
from ..core.exceptions import Forbidden, NotFound, SlotTaken, Unavailable
from ..models.appointment import Appointment, PaymentStatus
from ..models.doctor import Doctor
from ..models.user import User
from .coordinator import SlotCoordinator
from .locks import SlotKey

logger = logging.getLogger(__name__)

class ReservationService:
    """Books and cancels appointment slots.

    Every write goes through the slot coordinator, so an appointment and its
    doctor's calendar always change together: a slot is in the calendar
    exactly when a non-cancelled appointment holds it.
    """

    def __init__(self, db: Session, coordinator: Optional[SlotCoordinator] = None):
        self.db = db
        self.coordinator = coordinator or SlotCoordinator()

    def book_slot(
        self,
        patient_id: int,
        doctor_id: int,
        slot_date: str,
        slot_time: str
    ) -> Appointment:
        """Reserve a slot for a patient and create the appointment."""
        key = SlotKey(doctor_id, slot_date, slot_time)
        appointment = self.coordinator.run(
            self.db, key,
            lambda: self._book(patient_id, doctor_id, slot_date, slot_time)
        )
        self.db.refresh(appointment)

        logger.info(
            f"Booked appointment {appointment.id}: patient {patient_id} "
            f"with doctor {doctor_id} at {slot_date} {slot_time}"
        )
        return appointment

    def cancel_appointment(self, requester_id: int, appointment_id: int) -> Appointment:
        """Cancel a patient's appointment and free its slot.

        Cancelling an already cancelled appointment succeeds without touching
        the calendar.
        """
        # Slot fields never change, so the lock key can be read up front
        appointment = self._get_appointment(appointment_id)
        if appointment.patient_id != requester_id:
            raise Forbidden()

        key = SlotKey(appointment.doctor_id, appointment.slot_date, appointment.slot_time)
        appointment = self.coordinator.run(
            self.db, key,
            lambda: self._cancel(requester_id, appointment_id)
        )
        self.db.refresh(appointment)

        logger.info(f"Cancelled appointment {appointment_id} for patient {requester_id}")
        return appointment

    def is_booked(self, doctor_id: int, slot_date: str, slot_time: str) -> bool:
        """Read-only availability check."""
        return self._get_doctor(doctor_id).calendar.is_booked(slot_date, slot_time)

    def booked_times(self, doctor_id: int, slot_date: str) -> Set[str]:
        return self._get_doctor(doctor_id).calendar.booked_times(slot_date)

    def get_appointment(self, appointment_id: int) -> Appointment:
        return self._get_appointment(appointment_id)

    def list_for_patient(self, patient_id: int) -> List[Appointment]:
        """Patient's appointments, newest first."""
        return self.db.query(Appointment).filter(
            Appointment.patient_id == patient_id
        ).order_by(
            Appointment.created_at.desc(), Appointment.id.desc()
        ).all()

    def list_all(self) -> List[Appointment]:
        """Every appointment, newest first."""
        return self.db.query(Appointment).order_by(
            Appointment.created_at.desc(), Appointment.id.desc()
        ).all()

    def _book(self, patient_id: int, doctor_id: int, slot_date: str, slot_time: str) -> Appointment:
        doctor = self._get_doctor(doctor_id)

        if not doctor.available:
            raise Unavailable(doctor_id)

        if doctor.calendar.is_booked(slot_date, slot_time):
            raise SlotTaken(doctor_id, slot_date, slot_time)

        patient = self.db.query(User).filter(User.id == patient_id).first()
        if not patient:
            raise NotFound("patient", patient_id)

        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            slot_date=slot_date,
            slot_time=slot_time,
            amount=doctor.fees or settings.DEFAULT_APPOINTMENT_FEE,
            cancelled=False,
            is_completed=False,
            payment=PaymentStatus.PENDING,
        )
        self.db.add(appointment)
        self.db.flush()

        # Other times of this doctor may have been written since the checks above
        doctor = self._get_doctor(doctor_id, for_update=True)
        if not doctor.available:
            raise Unavailable(doctor_id)

        calendar = doctor.calendar
        if calendar.is_booked(slot_date, slot_time):
            raise SlotTaken(doctor_id, slot_date, slot_time)
        calendar.mark_booked(slot_date, slot_time)
        doctor.calendar = calendar

        self.db.flush()
        return appointment

    def _cancel(self, requester_id: int, appointment_id: int) -> Appointment:
        appointment = self._get_appointment(appointment_id)
        if appointment.patient_id != requester_id:
            raise Forbidden()

        if appointment.cancelled:
            return appointment

        appointment.cancelled = True
        self.db.flush()

        try:
            doctor = self._get_doctor(appointment.doctor_id, for_update=True)
        except NotFound:
            logger.warning(
                f"Doctor {appointment.doctor_id} missing while cancelling appointment {appointment_id}"
            )
            return appointment

        calendar = doctor.calendar
        if calendar.is_booked(appointment.slot_date, appointment.slot_time):
            calendar.release(appointment.slot_date, appointment.slot_time)
            doctor.calendar = calendar
            self.db.flush()
        return appointment

    def _get_doctor(self, doctor_id: int, for_update: bool = False) -> Doctor:
        # populate_existing: never trust a copy cached earlier in this session
        query = self.db.query(Doctor).populate_existing()
        if for_update:
            query = query.with_for_update()
        doctor = query.filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFound("doctor", doctor_id)
        return doctor

    def _get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).populate_existing().filter(
            Appointment.id == appointment_id
        ).first()
        if not appointment:
            raise NotFound("appointment", appointment_id)
        return appointment
