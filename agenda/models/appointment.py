"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from agenda.database import Base
from agenda.models.location import ProfessionalLocation
from agenda.models.user import User


APPOINTMENT_STATUSES = ('scheduled', 'confirmed', 'in_progress', 'completed', 'cancelled')
RECURRENCE_PATTERNS = ('weekly', 'biweekly', 'monthly')

# At most one active appointment per professional and timestamp.
ACTIVE_SLOT_CONDITION = text("status <> 'cancelled'")


class Appointment(Base):
    """Represents a scheduled appointment."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_professional_start_active",
            "professional_id",
            "start_time",
            unique=True,
            postgresql_where=ACTIVE_SLOT_CONDITION,
            sqlite_where=ACTIVE_SLOT_CONDITION,
        ),
    )

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    location_id = Column(Integer, ForeignKey("professional_locations.id"))
    start_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default='scheduled')
    notes = Column(String)
    is_recurring = Column(Boolean, default=False)
    recurrence_pattern = Column(String)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    patient = relationship(User, foreign_keys=[patient_id])
    location = relationship(ProfessionalLocation)
