import logging
from datetime import date, datetime, time, timedelta

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core import config
from agenda.core.exceptions import PersistenceError, ValidationError
from agenda.models.appointment import Appointment
from agenda.models.blocked_time import BlockedTime
from agenda.models.schedule import WEEKDAYS
from agenda.services.schedule import get_schedule_config

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


class DaySlot(BaseModel):
    time: str
    start_time: datetime
    is_booked: bool
    is_blocked: bool
    is_available: bool


def _weekday_name(weekday: int | str) -> str:
    if isinstance(weekday, int):
        if not 0 <= weekday < len(WEEKDAYS):
            raise ValidationError('Weekday must be between 0 (Monday) and 6 (Sunday).')
        return WEEKDAYS[weekday]

    normalized = weekday.strip().lower()
    if normalized not in WEEKDAYS:
        raise ValidationError(f'Unknown weekday: {weekday}.')
    return normalized


def _to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def _format_minutes(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def resolve_slot_duration(value: int | None) -> int:
    if not value or value <= 0:
        return config.DEFAULT_SLOT_DURATION_MINUTES
    return value


def generate_slots(schedule, weekday: int | str) -> list[str]:
    """Bookable start times ("HH:MM") of one weekday of a schedule.

    The cursor starts at the day's start and advances by the slot duration
    while it is strictly before the day's end. Times inside the break window
    ``[break_start, break_end)`` are skipped but still advance the cursor, so
    the grid after the break keeps its alignment.
    """
    day = _weekday_name(weekday)
    day_start = getattr(schedule, f'{day}_start')
    day_end = getattr(schedule, f'{day}_end')
    if day_start is None or day_end is None:
        return []

    duration = resolve_slot_duration(getattr(schedule, 'slot_duration', None))
    cursor = _to_minutes(day_start)
    end = _to_minutes(day_end)

    break_start = schedule.break_start
    break_end = schedule.break_end
    has_break = break_start is not None and break_end is not None and break_start < break_end
    if has_break:
        break_start_minutes = _to_minutes(break_start)
        break_end_minutes = _to_minutes(break_end)

    slots: list[str] = []
    while cursor < end and cursor < MINUTES_PER_DAY:
        if not (has_break and break_start_minutes <= cursor < break_end_minutes):
            slots.append(_format_minutes(cursor))
        cursor += duration

    return slots


def list_day_slots(db: Session, professional_id: int, day: date) -> list[DaySlot]:
    schedule = get_schedule_config(db, professional_id)
    slot_times = generate_slots(schedule, day.weekday())
    if not slot_times:
        return []

    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)

    try:
        booked = {
            start_time
            for (start_time,) in db.query(Appointment.start_time).filter(
                Appointment.professional_id == professional_id,
                Appointment.status != 'cancelled',
                Appointment.start_time >= day_start,
                Appointment.start_time < day_end,
            )
        }
        blocked = {
            start_time.replace(second=0, microsecond=0)
            for (start_time,) in db.query(BlockedTime.start_time).filter(
                BlockedTime.professional_id == professional_id,
                BlockedTime.start_time >= day_start,
                BlockedTime.start_time < day_end,
            )
        }
    except SQLAlchemyError as exc:
        logger.exception('Failed to load bookings for professional %s on %s', professional_id, day)
        raise PersistenceError() from exc

    day_slots: list[DaySlot] = []
    for slot_time in slot_times:
        start_time = datetime.combine(day, time.fromisoformat(slot_time))
        is_booked = start_time in booked
        is_blocked = start_time in blocked
        day_slots.append(
            DaySlot(
                time=slot_time,
                start_time=start_time,
                is_booked=is_booked,
                is_blocked=is_blocked,
                is_available=not is_booked and not is_blocked,
            )
        )

    return day_slots
