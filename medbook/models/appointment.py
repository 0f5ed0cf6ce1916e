from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Numeric, Index, Enum as SQLEnum, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)

    # Slot, immutable once created
    slot_date = Column(String(10), nullable=False, index=True)
    slot_time = Column(String(5), nullable=False)

    # Appointment details
    amount = Column(Numeric(10, 2), nullable=False)
    cancelled = Column(Boolean, nullable=False, default=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    payment = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    # Tracking
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("User", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")

    __table_args__ = (
        # At most one live appointment per slot
        Index(
            "uq_appointments_active_slot",
            "doctor_id", "slot_date", "slot_time",
            unique=True,
            sqlite_where=text("cancelled = 0"),
            postgresql_where=text("cancelled = false"),
        ),
    )

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, "
            f"slot='{self.slot_date} {self.slot_time}', cancelled={self.cancelled})>"
        )
