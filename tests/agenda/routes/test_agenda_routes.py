from datetime import date, datetime, time, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from agenda.routes.agenda_routes import (
    AddPatientRequest,
    CreateBlockedTimeRequest,
    CreateLocationRequest,
    UpdatePatientNotesRequest,
    add_patient,
    cancel_appointment,
    create_appointment,
    create_blocked_time,
    create_location,
    get_patient_history,
    get_schedule_config,
    list_appointments,
    list_day_slots,
    list_patients,
    put_schedule_config,
    remove_blocked_time,
    update_appointment,
    update_patient_notes,
)
from agenda.services.booking import AppointmentPatch, CreateAppointmentRequest
from agenda.services.schedule import ScheduleConfigPayload

MONDAY = date(2026, 1, 5)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('agenda.routes.agenda_routes.ensure_database_ready', lambda: None)


def configure_monday(db, professional) -> None:
    put_schedule_config(
        data=ScheduleConfigPayload(
            monday_start=time(8, 0),
            monday_end=time(18, 0),
            break_start=time(12, 0),
            break_end=time(13, 0),
        ),
        professional=professional,
        db=db,
    )


def test_get_schedule_config_returns_default_record(agenda_db, professional) -> None:
    schedule = get_schedule_config(professional=professional, db=agenda_db)

    assert schedule.professional_id == professional.id
    assert schedule.slot_duration == 30
    assert schedule.monday_start is None


def test_day_slots_reflect_schedule_and_bookings(agenda_db, professional, patient, active_subscription) -> None:
    configure_monday(agenda_db, professional)
    create_appointment(
        data=CreateAppointmentRequest(patient_id=patient.id, start_time=datetime(2026, 1, 5, 8, 30)),
        professional=professional,
        db=agenda_db,
    )

    slots = list_day_slots(day=MONDAY, professional=professional, db=agenda_db)

    assert len(slots) == 18
    assert [slot.time for slot in slots if slot.is_booked] == ['08:30']
    assert list_day_slots(day=MONDAY + timedelta(days=1), professional=professional, db=agenda_db) == []


def test_create_appointment_returns_joined_view(agenda_db, professional, patient, active_subscription) -> None:
    location = create_location(
        data=CreateLocationRequest(clinic_name='  Clinica Centro  '),
        professional=professional,
        db=agenda_db,
    )

    response = create_appointment(
        data=CreateAppointmentRequest(
            patient_id=patient.id,
            location_id=location.id,
            start_time=datetime(2026, 1, 5, 9, 0),
            notes='Initial assessment',
        ),
        professional=professional,
        db=agenda_db,
    )

    [appointment] = response.appointments
    assert response.skipped == []
    assert appointment.status == 'scheduled'
    assert appointment.patient_name == 'Ana Lima'
    assert appointment.patient_phone == '5511999990000'
    assert appointment.location_name == 'Clinica Centro'
    assert appointment.notes == 'Initial assessment'


def test_create_appointment_maps_conflict_to_409(agenda_db, professional, patient, active_subscription) -> None:
    data = CreateAppointmentRequest(patient_id=patient.id, start_time=datetime(2026, 1, 5, 9, 0))
    create_appointment(data=data, professional=professional, db=agenda_db)

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(data=data, professional=professional, db=agenda_db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'This time slot is already booked (2026-01-05 09:00).'


def test_create_appointment_maps_missing_subscription_to_402(agenda_db, professional, patient) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_appointment(
            data=CreateAppointmentRequest(patient_id=patient.id, start_time=datetime(2026, 1, 5, 9, 0)),
            professional=professional,
            db=agenda_db,
        )

    assert exception_info.value.status_code == 402
    assert exception_info.value.detail == 'An active agenda subscription is required to book appointments.'


def test_create_appointment_maps_unlinked_patient_to_400(agenda_db, professional, make_user) -> None:
    stranger = make_user('stranger@example.com', 'patient')

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(
            data=CreateAppointmentRequest(patient_id=stranger.id, start_time=datetime(2026, 1, 5, 9, 0)),
            professional=professional,
            db=agenda_db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Patient is not linked to this professional.'


def test_recurring_booking_reports_skipped_occurrences(agenda_db, professional, patient, active_subscription) -> None:
    create_appointment(
        data=CreateAppointmentRequest(patient_id=patient.id, start_time=datetime(2026, 1, 12, 9, 0)),
        professional=professional,
        db=agenda_db,
    )

    response = create_appointment(
        data=CreateAppointmentRequest(
            patient_id=patient.id,
            start_time=datetime(2026, 1, 5, 9, 0),
            recurrence={'pattern': 'weekly', 'end_date': date(2026, 1, 19)},
            skip_conflicts=True,
        ),
        professional=professional,
        db=agenda_db,
    )

    assert [appointment.start_time for appointment in response.appointments] == [
        datetime(2026, 1, 5, 9, 0),
        datetime(2026, 1, 19, 9, 0),
    ]
    assert all(appointment.recurrence_pattern == 'weekly' for appointment in response.appointments)
    assert [skipped.start_time for skipped in response.skipped] == [datetime(2026, 1, 12, 9, 0)]


def test_update_and_cancel_appointment(agenda_db, professional, patient, active_subscription) -> None:
    [created] = create_appointment(
        data=CreateAppointmentRequest(patient_id=patient.id, start_time=datetime(2026, 1, 5, 9, 0)),
        professional=professional,
        db=agenda_db,
    ).appointments

    updated = update_appointment(
        appointment_id=created.id,
        data=AppointmentPatch(start_time=datetime(2026, 1, 5, 10, 0), status='confirmed'),
        professional=professional,
        db=agenda_db,
    )
    assert updated.start_time == datetime(2026, 1, 5, 10, 0)
    assert updated.status == 'confirmed'

    cancelled = cancel_appointment(appointment_id=created.id, professional=professional, db=agenda_db)
    assert cancelled.status == 'cancelled'

    listed = list_appointments(start_date=MONDAY, end_date=MONDAY, professional=professional, db=agenda_db)
    assert [appointment.status for appointment in listed] == ['cancelled']


def test_update_missing_appointment_returns_404(agenda_db, professional, active_subscription) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_appointment(appointment_id=999, data=AppointmentPatch(notes='x'), professional=professional, db=agenda_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found.'


def test_list_appointments_rejects_reversed_range(agenda_db, professional) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_appointments(start_date=MONDAY, end_date=MONDAY - timedelta(days=1), professional=professional, db=agenda_db)

    assert exception_info.value.status_code == 400


def test_patient_routes(agenda_db, professional, patient, make_user) -> None:
    newcomer = make_user('carla@example.com', 'patient', name='Carla Dias')

    linked = add_patient(data=AddPatientRequest(patient_id=newcomer.id, notes='VIP'), professional=professional, db=agenda_db)
    assert linked.name == 'Carla Dias'
    assert linked.notes == 'VIP'

    assert [item.name for item in list_patients(professional=professional, db=agenda_db)] == ['Ana Lima', 'Carla Dias']
    assert get_patient_history(patient_id=newcomer.id, professional=professional, db=agenda_db) == []

    with pytest.raises(HTTPException) as exception_info:
        add_patient(data=AddPatientRequest(patient_id=newcomer.id), professional=professional, db=agenda_db)
    assert exception_info.value.status_code == 400


def test_add_patient_registers_private_patient_and_books(
    agenda_db, professional, active_subscription,
) -> None:
    added = add_patient(
        data=AddPatientRequest(name='Rafael Souza', phone='(11) 98888-7777', notes='  Walk-in  '),
        professional=professional,
        db=agenda_db,
    )

    assert added.name == 'Rafael Souza'
    assert added.phone == '11988887777'
    assert added.notes == 'Walk-in'

    response = create_appointment(
        data=CreateAppointmentRequest(patient_id=added.id, start_time=datetime(2026, 1, 5, 9, 0)),
        professional=professional,
        db=agenda_db,
    )
    assert [appointment.patient_name for appointment in response.appointments] == ['Rafael Souza']


def test_add_patient_requires_id_or_name() -> None:
    with pytest.raises(ValidationError):
        AddPatientRequest(email='someone@example.com', notes='no name')


def test_update_patient_notes_route(agenda_db, professional, patient, other_professional) -> None:
    updated = update_patient_notes(
        patient_id=patient.id,
        data=UpdatePatientNotesRequest(notes='Allergic to penicillin'),
        professional=professional,
        db=agenda_db,
    )
    assert updated.notes == 'Allergic to penicillin'

    cleared = update_patient_notes(
        patient_id=patient.id,
        data=UpdatePatientNotesRequest(notes='   '),
        professional=professional,
        db=agenda_db,
    )
    assert cleared.notes is None

    with pytest.raises(HTTPException) as exception_info:
        update_patient_notes(
            patient_id=patient.id,
            data=UpdatePatientNotesRequest(notes='x'),
            professional=other_professional,
            db=agenda_db,
        )
    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Patient not found.'


def test_create_location_rejects_blank_name() -> None:
    with pytest.raises(ValidationError):
        CreateLocationRequest(clinic_name='   ')


def test_blocked_time_routes(agenda_db, professional) -> None:
    blocked = create_blocked_time(
        data=CreateBlockedTimeRequest(start_time=datetime(2026, 1, 5, 15, 0), reason='Course'),
        professional=professional,
        db=agenda_db,
    )
    assert blocked.reason == 'Course'

    remove_blocked_time(blocked_time_id=blocked.id, professional=professional, db=agenda_db)

    with pytest.raises(HTTPException) as exception_info:
        remove_blocked_time(blocked_time_id=blocked.id, professional=professional, db=agenda_db)
    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Blocked time not found.'
