"""Agenda subscription definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from agenda.database import Base


class AgendaSubscription(Base):
    """One entry of the append-only subscription log of a professional.

    Rows are only ever inserted. The current entitlement is derived from the
    most recent row, see ``agenda.services.subscription``.
    """
    __tablename__ = "agenda_subscriptions"

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    payment_reference = Column(String)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
