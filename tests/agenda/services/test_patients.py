from datetime import date, datetime

import pytest

from agenda.core.exceptions import NotFoundError, ValidationError
from agenda.models.appointment import Appointment
from agenda.models.user import User
from agenda.services.blocked_times import create_blocked_time, delete_blocked_time, list_blocked_times
from agenda.services.locations import create_location, list_locations
from agenda.services.patients import (
    add_patient,
    get_patient_link,
    is_patient_linked,
    link_patient,
    list_patients,
    patient_history,
    update_patient_notes,
)


def test_link_patient_adds_patient_to_agenda(agenda_db, professional, make_user) -> None:
    patient = make_user('joao@example.com', 'patient', name='Joao')

    link = link_patient(agenda_db, professional.id, patient.id, notes='Referred by clinic')

    assert link.notes == 'Referred by clinic'
    assert is_patient_linked(agenda_db, professional.id, patient.id)


def test_link_patient_rejects_duplicate_link(agenda_db, professional, patient) -> None:
    with pytest.raises(ValidationError):
        link_patient(agenda_db, professional.id, patient.id)


@pytest.mark.parametrize('role', ['professional', 'admin'])
def test_link_patient_requires_patient_role(agenda_db, professional, make_user, role: str) -> None:
    user = make_user(f'{role}2@example.com', role)

    with pytest.raises(NotFoundError):
        link_patient(agenda_db, professional.id, user.id)


def test_list_patients_is_ordered_by_name(agenda_db, professional, patient, make_user) -> None:
    another = make_user('bruno@example.com', 'patient', name='Bruno Costa')
    link_patient(agenda_db, professional.id, another.id)

    assert [link.patient.name for link in list_patients(agenda_db, professional.id)] == ['Ana Lima', 'Bruno Costa']


def test_add_patient_registers_user_and_link_together(agenda_db, professional) -> None:
    link = add_patient(agenda_db, professional.id, 'Marina Alves', 'marina@example.com', '+55 11 97777-6666', 'Private')

    registered = agenda_db.query(User).filter(User.email == 'marina@example.com').one()
    assert registered.role == 'patient'
    assert registered.phone == '5511977776666'
    assert link.patient_id == registered.id
    assert link.notes == 'Private'
    assert is_patient_linked(agenda_db, professional.id, registered.id)


def test_add_patient_reuses_existing_patient_by_email(agenda_db, professional, other_professional, patient) -> None:
    link = add_patient(agenda_db, other_professional.id, 'Ana L.', patient.email)

    assert link.patient_id == patient.id
    assert agenda_db.query(User).filter(User.role == 'patient').count() == 1

    with pytest.raises(ValidationError):
        add_patient(agenda_db, professional.id, 'Ana Lima', patient.email)


def test_add_patient_rejects_email_of_non_patient(agenda_db, professional, other_professional) -> None:
    with pytest.raises(ValidationError):
        add_patient(agenda_db, professional.id, 'Dr. Souza', other_professional.email)

    assert get_patient_link(agenda_db, professional.id, other_professional.id) is None


def test_update_patient_notes_changes_only_the_link(agenda_db, professional, other_professional, patient) -> None:
    updated = update_patient_notes(agenda_db, professional.id, patient.id, 'Prefers mornings')

    assert updated.notes == 'Prefers mornings'
    assert get_patient_link(agenda_db, professional.id, patient.id).notes == 'Prefers mornings'

    with pytest.raises(NotFoundError):
        update_patient_notes(agenda_db, other_professional.id, patient.id, 'x')


def test_patient_history_lists_newest_first_including_cancelled(agenda_db, professional, patient) -> None:
    agenda_db.add_all([
        Appointment(professional_id=professional.id, patient_id=patient.id, start_time=datetime(2026, 1, 5, 9), status='completed'),
        Appointment(professional_id=professional.id, patient_id=patient.id, start_time=datetime(2026, 2, 5, 9), status='cancelled'),
    ])
    agenda_db.commit()

    history = patient_history(agenda_db, professional.id, patient.id)

    assert [appointment.status for appointment in history] == ['cancelled', 'completed']


def test_patient_history_requires_link(agenda_db, other_professional, patient) -> None:
    with pytest.raises(NotFoundError):
        patient_history(agenda_db, other_professional.id, patient.id)


def test_first_location_becomes_main_and_new_main_demotes_others(agenda_db, professional) -> None:
    first = create_location(agenda_db, professional.id, 'Centro')
    assert first.is_main is True

    second = create_location(agenda_db, professional.id, 'Zona Sul')
    assert second.is_main is False

    third = create_location(agenda_db, professional.id, 'Alphaville', is_main=True)

    mains = [location.id for location in list_locations(agenda_db, professional.id) if location.is_main]
    assert mains == [third.id]


def test_blocked_times_are_listed_by_inclusive_range_and_deleted(agenda_db, professional, other_professional) -> None:
    inside = create_blocked_time(agenda_db, professional.id, datetime(2026, 1, 7, 23, 30, 15), 'Conference')
    create_blocked_time(agenda_db, professional.id, datetime(2026, 1, 8, 8, 0))

    listed = list_blocked_times(agenda_db, professional.id, date(2026, 1, 5), date(2026, 1, 7))
    assert [blocked.id for blocked in listed] == [inside.id]
    assert listed[0].start_time == datetime(2026, 1, 7, 23, 30)

    with pytest.raises(NotFoundError):
        delete_blocked_time(agenda_db, other_professional.id, inside.id)

    delete_blocked_time(agenda_db, professional.id, inside.id)
    assert list_blocked_times(agenda_db, professional.id, date(2026, 1, 5), date(2026, 1, 7)) == []
