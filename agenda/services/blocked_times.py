import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core.exceptions import NotFoundError, PersistenceError, ValidationError
from agenda.models.blocked_time import BlockedTime

logger = logging.getLogger(__name__)


def list_blocked_times(db: Session, professional_id: int, start_date: date, end_date: date) -> list[BlockedTime]:
    if end_date < start_date:
        raise ValidationError('End date must not be before start date.')

    try:
        return db.query(BlockedTime).filter(
            BlockedTime.professional_id == professional_id,
            BlockedTime.start_time >= datetime.combine(start_date, time.min),
            BlockedTime.start_time < datetime.combine(end_date + timedelta(days=1), time.min),
        ).order_by(BlockedTime.start_time.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Failed to list blocked times for professional %s', professional_id)
        raise PersistenceError() from exc


def create_blocked_time(db: Session, professional_id: int, start_time: datetime, reason: str | None = None) -> BlockedTime:
    blocked_time = BlockedTime(
        professional_id=professional_id,
        start_time=start_time.replace(second=0, microsecond=0),
        reason=reason,
    )

    try:
        db.add(blocked_time)
        db.commit()
        db.refresh(blocked_time)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to block time for professional %s', professional_id)
        raise PersistenceError() from exc

    return blocked_time


def delete_blocked_time(db: Session, professional_id: int, blocked_time_id: int) -> None:
    try:
        blocked_time = db.query(BlockedTime).filter(
            BlockedTime.id == blocked_time_id,
            BlockedTime.professional_id == professional_id,
        ).first()

        if blocked_time is None:
            raise NotFoundError('Blocked time not found.')

        db.delete(blocked_time)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to unblock time %s', blocked_time_id)
        raise PersistenceError() from exc
