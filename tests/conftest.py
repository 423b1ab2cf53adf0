import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from agenda.database import Base  # noqa: E402
from agenda.models.appointment import Appointment  # noqa: E402,F401
from agenda.models.blocked_time import BlockedTime  # noqa: E402,F401
from agenda.models.location import ProfessionalLocation  # noqa: E402,F401
from agenda.models.patient_link import ProfessionalPatient  # noqa: E402
from agenda.models.schedule import ScheduleConfig  # noqa: E402,F401
from agenda.models.subscription import AgendaSubscription  # noqa: E402,F401
from agenda.models.user import User  # noqa: E402
from agenda.services.subscription import record_payment_approval  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def agenda_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def add_user(db, email: str, role: str, name: str | None = None, phone: str | None = None) -> User:
    user = User(email=email, role=role, name=name, phone=phone, hashed_password='')
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def professional(agenda_db) -> User:
    return add_user(agenda_db, 'doctor@example.com', 'professional', name='Dr. Ferreira')


@pytest.fixture
def other_professional(agenda_db) -> User:
    return add_user(agenda_db, 'other.doctor@example.com', 'professional', name='Dr. Souza')


@pytest.fixture
def patient(agenda_db, professional) -> User:
    patient = add_user(agenda_db, 'patient@example.com', 'patient', name='Ana Lima', phone='5511999990000')
    agenda_db.add(ProfessionalPatient(professional_id=professional.id, patient_id=patient.id))
    agenda_db.commit()
    return patient


@pytest.fixture
def active_subscription(agenda_db, professional):
    return record_payment_approval(agenda_db, professional.id, datetime.now(), 'pay-001')


@pytest.fixture
def make_user(agenda_db):
    def _make_user(email: str, role: str, name: str | None = None, phone: str | None = None) -> User:
        return add_user(agenda_db, email, role, name=name, phone=phone)

    return _make_user
