"""Blocked time definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from agenda.database import Base


class BlockedTime(Base):
    """A time a professional marked as unavailable. Advisory for slot rendering."""
    __tablename__ = "blocked_times"

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    reason = Column(String)
    created_at = Column(DateTime, server_default=func.now())
