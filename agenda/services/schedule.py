import logging
from datetime import datetime, time

from pydantic import BaseModel, Field, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core import config
from agenda.core.exceptions import PersistenceError
from agenda.models.schedule import WEEKDAYS, ScheduleConfig

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = tuple(
    f'{day}_{edge}' for day in WEEKDAYS for edge in ('start', 'end')
) + ('break_start', 'break_end', 'slot_duration')


class ScheduleConfigPayload(BaseModel):
    monday_start: time | None = None
    monday_end: time | None = None
    tuesday_start: time | None = None
    tuesday_end: time | None = None
    wednesday_start: time | None = None
    wednesday_end: time | None = None
    thursday_start: time | None = None
    thursday_end: time | None = None
    friday_start: time | None = None
    friday_end: time | None = None
    saturday_start: time | None = None
    saturday_end: time | None = None
    sunday_start: time | None = None
    sunday_end: time | None = None
    break_start: time | None = None
    break_end: time | None = None
    slot_duration: int = Field(default=config.DEFAULT_SLOT_DURATION_MINUTES, gt=0, le=24 * 60)

    @model_validator(mode='after')
    def validate_working_hours(self) -> 'ScheduleConfigPayload':
        for day in WEEKDAYS:
            start = getattr(self, f'{day}_start')
            end = getattr(self, f'{day}_end')
            if start is None and end is None:
                continue
            if start is None or end is None:
                raise ValueError(f'{day.capitalize()} needs both a start and an end time.')
            if end <= start:
                raise ValueError(f'{day.capitalize()} end time must be after its start time.')
        return self


def default_schedule_config(professional_id: int) -> ScheduleConfig:
    """Unsaved record used when a professional never configured the agenda."""
    return ScheduleConfig(
        professional_id=professional_id,
        slot_duration=config.DEFAULT_SLOT_DURATION_MINUTES,
    )


def get_schedule_config(db: Session, professional_id: int) -> ScheduleConfig:
    try:
        schedule = db.query(ScheduleConfig).filter(
            ScheduleConfig.professional_id == professional_id,
        ).first()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load schedule config for professional %s', professional_id)
        raise PersistenceError() from exc

    return schedule or default_schedule_config(professional_id)


def put_schedule_config(db: Session, professional_id: int, payload: ScheduleConfigPayload) -> ScheduleConfig:
    try:
        schedule = db.query(ScheduleConfig).filter(
            ScheduleConfig.professional_id == professional_id,
        ).first()
        if schedule is None:
            schedule = ScheduleConfig(professional_id=professional_id)
            db.add(schedule)

        for field_name in SCHEDULE_FIELDS:
            setattr(schedule, field_name, getattr(payload, field_name))
        schedule.updated_at = datetime.now()

        db.commit()
        db.refresh(schedule)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to save schedule config for professional %s', professional_id)
        raise PersistenceError() from exc

    logger.info('Schedule config saved for professional %s', professional_id)
    return schedule
