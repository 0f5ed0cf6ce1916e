from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Numeric, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.calendar import SlotCalendar
from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)

    # Profile
    name = Column(String(200), nullable=False)
    speciality = Column(String(100), nullable=False, default="General Physician")
    fees = Column(Numeric(10, 2), nullable=True, default=100)

    # Availability
    available = Column(Boolean, default=True, index=True)

    # Booked slots: {"YYYY-MM-DD": ["HH:MM", ...]}
    # Written only by the reservation service through `calendar`.
    slots_booked = Column(JSON, nullable=False, default=dict)

    # Bumped on every UPDATE of the row; a stale write raises StaleDataError
    version = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor")
    appointments = relationship("Appointment", back_populates="doctor")

    __mapper_args__ = {"version_id_col": version}

    @property
    def calendar(self) -> SlotCalendar:
        """Snapshot of the booked slots; assign it back to persist changes."""
        return SlotCalendar.from_json(self.slots_booked)

    @calendar.setter
    def calendar(self, value: SlotCalendar) -> None:
        # Always assign a fresh object so the JSON column is flagged dirty
        self.slots_booked = value.to_json()

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', available={self.available})>"
