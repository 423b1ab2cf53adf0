from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.auth.dependencies import get_current_professional
from agenda.core.exceptions import AgendaError
from agenda.database import SessionLocal, ensure_appointment_schema, ensure_blocked_time_schema
from agenda.models.appointment import Appointment
from agenda.models.patient_link import ProfessionalPatient
from agenda.models.user import User
from agenda.services import blocked_times, booking, locations, patients, schedule, slots
from agenda.services.booking import AppointmentPatch, CreateAppointmentRequest, SkippedOccurrence
from agenda.services.schedule import ScheduleConfigPayload
from agenda.services.slots import DaySlot

router = APIRouter(tags=['agenda'])


class ScheduleConfigResponse(BaseModel):
    professional_id: int
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
    slot_duration: int

    class Config:
        from_attributes = True


class AddPatientRequest(BaseModel):
    """Either an existing patient id, or the details of a private patient to register."""

    patient_id: int | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    notes: str | None = None

    @field_validator('name', 'email', 'phone', 'notes')
    @classmethod
    def strip_blank(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode='after')
    def validate_patient_reference(self) -> 'AddPatientRequest':
        if self.patient_id is None and not self.name:
            raise ValueError('Provide a patient id or the new patient name.')
        return self


class UpdatePatientNotesRequest(BaseModel):
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def strip_blank(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class PatientResponse(BaseModel):
    id: int
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    linked_at: datetime | None = None
    notes: str | None = None


class CreateLocationRequest(BaseModel):
    clinic_name: str
    address: str | None = None
    city: str | None = None
    state: str | None = None
    phone: str | None = None
    is_main: bool = False

    @field_validator('clinic_name')
    @classmethod
    def validate_clinic_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Clinic name is required.')
        return normalized


class LocationResponse(BaseModel):
    id: int
    clinic_name: str
    address: str | None = None
    city: str | None = None
    state: str | None = None
    phone: str | None = None
    is_main: bool

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    start_time: datetime
    status: str
    notes: str | None = None
    is_recurring: bool
    recurrence_pattern: str | None = None
    patient_id: int
    patient_name: str | None = None
    patient_phone: str | None = None
    location_id: int | None = None
    location_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BookingResponse(BaseModel):
    appointments: list[AppointmentResponse]
    skipped: list[SkippedOccurrence]


class CreateBlockedTimeRequest(BaseModel):
    start_time: datetime
    reason: str | None = None


class BlockedTimeResponse(BaseModel):
    id: int
    start_time: datetime
    reason: str | None = None

    class Config:
        from_attributes = True


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
        ensure_blocked_time_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def to_http_exception(exc: AgendaError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    patient = appointment.patient
    location = appointment.location
    return AppointmentResponse(
        id=appointment.id,
        start_time=appointment.start_time,
        status=appointment.status,
        notes=appointment.notes,
        is_recurring=bool(appointment.is_recurring),
        recurrence_pattern=appointment.recurrence_pattern,
        patient_id=appointment.patient_id,
        patient_name=patient.name if patient else None,
        patient_phone=patient.phone if patient else None,
        location_id=appointment.location_id,
        location_name=location.clinic_name if location else None,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def to_patient_response(link: ProfessionalPatient) -> PatientResponse:
    return PatientResponse(
        id=link.patient.id,
        name=link.patient.name,
        email=link.patient.email,
        phone=link.patient.phone,
        linked_at=link.created_at,
        notes=link.notes,
    )


@router.get('/schedule-config', response_model=ScheduleConfigResponse)
def get_schedule_config(
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    try:
        return schedule.get_schedule_config(db, professional.id)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.put('/schedule-config', response_model=ScheduleConfigResponse)
def put_schedule_config(
    data: ScheduleConfigPayload,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    try:
        return schedule.put_schedule_config(db, professional.id, data)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.get('/slots', response_model=list[DaySlot])
def list_day_slots(
    day: date = Query(...),
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return slots.list_day_slots(db, professional.id, day)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.get('/patients', response_model=list[PatientResponse])
def list_patients(
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    try:
        return [to_patient_response(link) for link in patients.list_patients(db, professional.id)]
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.post('/patients', response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def add_patient(
    data: AddPatientRequest,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    try:
        if data.patient_id is not None:
            link = patients.link_patient(db, professional.id, data.patient_id, data.notes)
        else:
            link = patients.add_patient(db, professional.id, data.name, data.email, data.phone, data.notes)
        return to_patient_response(link)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.put('/patients/{patient_id}', response_model=PatientResponse)
def update_patient_notes(
    patient_id: int,
    data: UpdatePatientNotesRequest,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    try:
        link = patients.update_patient_notes(db, professional.id, patient_id, data.notes)
        return to_patient_response(link)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.get('/patients/{patient_id}/history', response_model=list[AppointmentResponse])
def get_patient_history(
    patient_id: int,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        history = patients.patient_history(db, professional.id, patient_id)
        return [to_appointment_response(appointment) for appointment in history]
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.get('/locations', response_model=list[LocationResponse])
def list_locations(
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    try:
        return locations.list_locations(db, professional.id)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.post('/locations', response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
def create_location(
    data: CreateLocationRequest,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    try:
        return locations.create_location(db, professional.id, **data.model_dump())
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_appointments(
    start_date: date = Query(...),
    end_date: date = Query(...),
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments = booking.list_appointments(db, professional.id, start_date, end_date)
        return [to_appointment_response(appointment) for appointment in appointments]
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.post('/appointments', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        result = booking.create_appointments(db, professional.id, data)
        return BookingResponse(
            appointments=[to_appointment_response(appointment) for appointment in result.appointments],
            skipped=result.skipped,
        )
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.put('/appointments/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: AppointmentPatch,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = booking.update_appointment(db, professional.id, appointment_id, data)
        return to_appointment_response(appointment)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.delete('/appointments/{appointment_id}', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = booking.cancel_appointment(db, professional.id, appointment_id)
        return to_appointment_response(appointment)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.get('/blocked-times', response_model=list[BlockedTimeResponse])
def list_blocked_times(
    start_date: date = Query(...),
    end_date: date = Query(...),
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return blocked_times.list_blocked_times(db, professional.id, start_date, end_date)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.post('/blocked-times', response_model=BlockedTimeResponse, status_code=status.HTTP_201_CREATED)
def create_blocked_time(
    data: CreateBlockedTimeRequest,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return blocked_times.create_blocked_time(db, professional.id, data.start_time, data.reason)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.delete('/blocked-times/{blocked_time_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_blocked_time(
    blocked_time_id: int,
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        blocked_times.delete_blocked_time(db, professional.id, blocked_time_id)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc
