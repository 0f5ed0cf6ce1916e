from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..core.exceptions import NotFound
from ..models.doctor import Doctor
from .coordinator import SlotCoordinator

logger = logging.getLogger(__name__)

class DoctorService:
    def __init__(self, db: Session, coordinator: Optional[SlotCoordinator] = None):
        self.db = db
        self.coordinator = coordinator or SlotCoordinator()

    def list_doctors(self) -> List[Doctor]:
        return self.db.query(Doctor).order_by(Doctor.id).all()

    def toggle_availability(self, doctor_id: int) -> Doctor:
        """Flip whether the doctor accepts new bookings.

        Existing appointments and the slot calendar are left as they are. A
        calendar write committed meanwhile makes the row stale, in which case
        the toggle is retried on the fresh row.
        """
        doctor = self.coordinator.run(self.db, None, lambda: self._toggle(doctor_id))
        self.db.refresh(doctor)

        logger.info(f"Doctor {doctor_id} made {'available' if doctor.available else 'unavailable'}")
        return doctor

    def _toggle(self, doctor_id: int) -> Doctor:
        doctor = self.db.query(Doctor).populate_existing().with_for_update().filter(
            Doctor.id == doctor_id
        ).first()
        if not doctor:
            raise NotFound("doctor", doctor_id)

        doctor.available = not doctor.available
        self.db.flush()
        return doctor
