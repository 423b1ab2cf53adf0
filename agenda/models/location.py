"""Professional location definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String

from agenda.database import Base


class ProfessionalLocation(Base):
    """A clinic address where a professional sees patients."""
    __tablename__ = "professional_locations"

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    clinic_name = Column(String, nullable=False)
    address = Column(String)
    city = Column(String)
    state = Column(String)
    phone = Column(String)
    is_main = Column(Boolean, default=False)
