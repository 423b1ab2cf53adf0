import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core.exceptions import PersistenceError
from agenda.models.appointment import Appointment

logger = logging.getLogger(__name__)


def find_conflict(
    db: Session,
    professional_id: int,
    start_time: datetime,
    exclude_appointment_id: int | None = None,
) -> Appointment | None:
    """Active appointment already holding ``start_time`` for the professional, if any.

    Matching is on the exact timestamp: slots are aligned upstream, so two
    bookings either share a start time or do not collide.
    """
    try:
        query = db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.start_time == start_time,
            Appointment.status != 'cancelled',
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.first()
    except SQLAlchemyError as exc:
        logger.exception('Conflict lookup failed for professional %s at %s', professional_id, start_time)
        raise PersistenceError() from exc


def has_conflict(
    db: Session,
    professional_id: int,
    start_time: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    return find_conflict(db, professional_id, start_time, exclude_appointment_id) is not None
