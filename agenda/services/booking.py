"""Create, reschedule and cancel appointments.

Booking and rescheduling check, in order: patient link, subscription
entitlement, then the double-booking rule for each occurrence. The partial
unique index on ``appointments(professional_id, start_time)`` backs the
conflict check, so a concurrent insert that slips past the read surfaces as
an ``IntegrityError`` and is reported as a conflict for that occurrence.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Literal

from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from agenda.core import config
from agenda.core.exceptions import (
    ConflictError,
    LinkError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from agenda.models.appointment import APPOINTMENT_STATUSES, Appointment
from agenda.services.conflicts import has_conflict
from agenda.services.locations import get_location
from agenda.services.patients import is_patient_linked
from agenda.services.recurrence import expand
from agenda.services.subscription import require_booking_entitlement

logger = logging.getLogger(__name__)

STATUS_ORDER = {
    'scheduled': 0,
    'confirmed': 1,
    'in_progress': 2,
    'completed': 3,
}
TERMINAL_STATUSES = {'completed', 'cancelled'}


def normalize_timestamp(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.replace(second=0, microsecond=0)


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class RecurrenceRequest(BaseModel):
    pattern: Literal['weekly', 'biweekly', 'monthly']
    end_date: date | None = None


class CreateAppointmentRequest(BaseModel):
    patient_id: int
    location_id: int | None = None
    start_time: datetime
    notes: str | None = None
    recurrence: RecurrenceRequest | None = None
    skip_conflicts: bool = False

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: datetime) -> datetime:
        return normalize_timestamp(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class AppointmentPatch(BaseModel):
    """Partial update. Only the fields the caller actually sent are applied."""

    start_time: datetime | None = None
    status: str | None = None
    notes: str | None = None

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return normalize_timestamp(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in APPOINTMENT_STATUSES:
            raise ValueError('Invalid appointment status.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class SkippedOccurrence(BaseModel):
    start_time: datetime
    reason: str


@dataclass
class BookingResult:
    appointments: list[Appointment] = field(default_factory=list)
    skipped: list[SkippedOccurrence] = field(default_factory=list)


def validate_status_transition(current: str, target: str) -> None:
    if target == current:
        return
    if current in TERMINAL_STATUSES:
        raise ValidationError(f'A {current} appointment cannot change status.')
    if target == 'cancelled':
        return
    if STATUS_ORDER[target] < STATUS_ORDER[current]:
        raise ValidationError(f'Appointment status cannot go back from {current} to {target}.')


def get_appointment(db: Session, professional_id: int, appointment_id: int) -> Appointment:
    try:
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.professional_id == professional_id,
        ).first()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load appointment %s', appointment_id)
        raise PersistenceError() from exc

    if appointment is None:
        raise NotFoundError('Appointment not found.')
    return appointment


def list_appointments(db: Session, professional_id: int, start_date: date, end_date: date) -> list[Appointment]:
    if end_date < start_date:
        raise ValidationError('End date must not be before start date.')

    try:
        return db.query(Appointment).options(
            joinedload(Appointment.patient),
            joinedload(Appointment.location),
        ).filter(
            Appointment.professional_id == professional_id,
            Appointment.start_time >= datetime.combine(start_date, time.min),
            Appointment.start_time < datetime.combine(end_date + timedelta(days=1), time.min),
        ).order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Failed to list appointments for professional %s', professional_id)
        raise PersistenceError() from exc


def _new_appointment(professional_id: int, request: CreateAppointmentRequest, start_time: datetime) -> Appointment:
    return Appointment(
        professional_id=professional_id,
        patient_id=request.patient_id,
        location_id=request.location_id,
        start_time=start_time,
        status='scheduled',
        notes=request.notes,
        is_recurring=request.recurrence is not None,
        recurrence_pattern=request.recurrence.pattern if request.recurrence else None,
    )


def _book_all_or_nothing(
    db: Session,
    professional_id: int,
    request: CreateAppointmentRequest,
    occurrences: list[datetime],
) -> BookingResult:
    for occurrence in occurrences:
        if has_conflict(db, professional_id, occurrence):
            logger.warning('Booking rejected for professional %s: %s already booked', professional_id, occurrence)
            raise ConflictError(occurrence)

    result = BookingResult()
    try:
        for occurrence in occurrences:
            appointment = _new_appointment(professional_id, request, occurrence)
            db.add(appointment)
            try:
                db.flush()
            except IntegrityError as exc:
                db.rollback()
                logger.warning('Concurrent booking for professional %s at %s', professional_id, occurrence)
                raise ConflictError(occurrence) from exc
            result.appointments.append(appointment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to persist appointments for professional %s', professional_id)
        raise PersistenceError() from exc

    return result


def _book_each(
    db: Session,
    professional_id: int,
    request: CreateAppointmentRequest,
    occurrences: list[datetime],
) -> BookingResult:
    result = BookingResult()
    for occurrence in occurrences:
        if has_conflict(db, professional_id, occurrence):
            result.skipped.append(SkippedOccurrence(start_time=occurrence, reason=ConflictError.default_message))
            continue

        appointment = _new_appointment(professional_id, request, occurrence)
        try:
            db.add(appointment)
            db.commit()
        except IntegrityError:
            db.rollback()
            result.skipped.append(SkippedOccurrence(start_time=occurrence, reason=ConflictError.default_message))
            continue
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception('Failed to persist appointment for professional %s', professional_id)
            raise PersistenceError() from exc
        result.appointments.append(appointment)

    if not result.appointments:
        raise ConflictError(occurrences[0])

    if result.skipped:
        logger.warning(
            'Skipped %d conflicting occurrence(s) for professional %s',
            len(result.skipped),
            professional_id,
        )
    return result


def create_appointments(
    db: Session,
    professional_id: int,
    request: CreateAppointmentRequest,
    now: datetime | None = None,
) -> BookingResult:
    if not is_patient_linked(db, professional_id, request.patient_id):
        raise LinkError()

    if request.location_id is not None and get_location(db, professional_id, request.location_id) is None:
        raise NotFoundError('Location not found.')

    require_booking_entitlement(db, professional_id, now)

    if request.recurrence is None:
        occurrences = [request.start_time]
    else:
        occurrences = expand(request.start_time, request.recurrence.pattern, request.recurrence.end_date)

    if request.skip_conflicts:
        result = _book_each(db, professional_id, request, occurrences)
    else:
        result = _book_all_or_nothing(db, professional_id, request, occurrences)

    for appointment in result.appointments:
        db.refresh(appointment)

    logger.info(
        'Booked %d appointment(s) for professional %s starting %s',
        len(result.appointments),
        professional_id,
        request.start_time,
    )
    return result


def update_appointment(
    db: Session,
    professional_id: int,
    appointment_id: int,
    patch: AppointmentPatch,
    now: datetime | None = None,
) -> Appointment:
    appointment = get_appointment(db, professional_id, appointment_id)

    supplied = patch.model_fields_set
    new_status = patch.status if 'status' in supplied else None
    new_start = patch.start_time if 'start_time' in supplied else None
    reschedule = new_start is not None and new_start != appointment.start_time

    if new_status is not None:
        validate_status_transition(appointment.status, new_status)

    if reschedule:
        if appointment.status in TERMINAL_STATUSES:
            raise ValidationError(f'A {appointment.status} appointment cannot be rescheduled.')
        require_booking_entitlement(db, professional_id, now)
        if has_conflict(db, professional_id, new_start, exclude_appointment_id=appointment.id):
            logger.warning('Reschedule rejected for appointment %s: %s already booked', appointment.id, new_start)
            raise ConflictError(new_start)

    try:
        if reschedule:
            appointment.start_time = new_start
        if new_status is not None:
            appointment.status = new_status
        if 'notes' in supplied:
            appointment.notes = patch.notes
        appointment.updated_at = datetime.now()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(new_start) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update appointment %s', appointment_id)
        raise PersistenceError() from exc

    db.refresh(appointment)
    return appointment


def cancel_appointment(db: Session, professional_id: int, appointment_id: int) -> Appointment:
    """Soft-cancel: the row stays for history and its timestamp becomes bookable again."""
    appointment = get_appointment(db, professional_id, appointment_id)

    if appointment.status == 'cancelled':
        return appointment
    if appointment.status == 'completed':
        raise ValidationError('A completed appointment cannot be cancelled.')

    try:
        appointment.status = 'cancelled'
        appointment.updated_at = datetime.now()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to cancel appointment %s', appointment_id)
        raise PersistenceError() from exc

    db.refresh(appointment)
    logger.info('Appointment %s cancelled by professional %s', appointment_id, professional_id)
    return appointment
