"""Weekly schedule configuration definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Time, func

from agenda.database import Base


WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


class ScheduleConfig(Base):
    """Working hours per weekday, a shared break and the slot length of one professional."""
    __tablename__ = "professional_schedules"

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    monday_start = Column(Time)
    monday_end = Column(Time)
    tuesday_start = Column(Time)
    tuesday_end = Column(Time)
    wednesday_start = Column(Time)
    wednesday_end = Column(Time)
    thursday_start = Column(Time)
    thursday_end = Column(Time)
    friday_start = Column(Time)
    friday_end = Column(Time)
    saturday_start = Column(Time)
    saturday_end = Column(Time)
    sunday_start = Column(Time)
    sunday_end = Column(Time)
    break_start = Column(Time)
    break_end = Column(Time)
    slot_duration = Column(Integer, default=30)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
