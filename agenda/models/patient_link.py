"""Professional-patient link definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from agenda.database import Base
from agenda.models.user import User


class ProfessionalPatient(Base):
    """Links a patient to the agenda of one professional."""
    __tablename__ = "professional_patients"
    __table_args__ = (
        UniqueConstraint("professional_id", "patient_id", name="uq_professional_patients_pair"),
    )

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    notes = Column(String)
    created_at = Column(DateTime, server_default=func.now())

    patient = relationship(User, foreign_keys=[patient_id])
