import logging
import re

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core.exceptions import NotFoundError, PersistenceError, ValidationError
from agenda.models.appointment import Appointment
from agenda.models.patient_link import ProfessionalPatient
from agenda.models.user import User

logger = logging.getLogger(__name__)


def get_patient_link(db: Session, professional_id: int, patient_id: int) -> ProfessionalPatient | None:
    try:
        return db.query(ProfessionalPatient).filter(
            ProfessionalPatient.professional_id == professional_id,
            ProfessionalPatient.patient_id == patient_id,
        ).first()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load patient link %s/%s', professional_id, patient_id)
        raise PersistenceError() from exc


def is_patient_linked(db: Session, professional_id: int, patient_id: int) -> bool:
    return get_patient_link(db, professional_id, patient_id) is not None


def link_patient(db: Session, professional_id: int, patient_id: int, notes: str | None = None) -> ProfessionalPatient:
    try:
        patient = db.query(User).filter(User.id == patient_id, User.role == 'patient').first()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load patient %s', patient_id)
        raise PersistenceError() from exc

    if patient is None:
        raise NotFoundError('Patient not found.')

    if is_patient_linked(db, professional_id, patient_id):
        raise ValidationError('This patient is already linked to your agenda.')

    link = ProfessionalPatient(professional_id=professional_id, patient_id=patient_id, notes=notes)
    try:
        db.add(link)
        db.commit()
        db.refresh(link)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to link patient %s to professional %s', patient_id, professional_id)
        raise PersistenceError() from exc

    logger.info('Patient %s linked to professional %s', patient_id, professional_id)
    return link


def add_patient(
    db: Session,
    professional_id: int,
    name: str,
    email: str | None = None,
    phone: str | None = None,
    notes: str | None = None,
) -> ProfessionalPatient:
    """Link a patient by email, registering a private patient user when none exists.

    The new user and its link are written in a single commit.
    """
    existing = None
    if email:
        try:
            existing = db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as exc:
            logger.exception('Failed to look up patient by email')
            raise PersistenceError() from exc

    if existing is not None:
        if existing.role != 'patient':
            raise ValidationError('This email belongs to a user who is not a patient.')
        return link_patient(db, professional_id, existing.id, notes)

    digits = re.sub(r'\D', '', phone or '')
    patient = User(name=name, email=email, phone=digits or None, role='patient')
    try:
        db.add(patient)
        db.flush()
        link = ProfessionalPatient(professional_id=professional_id, patient_id=patient.id, notes=notes)
        db.add(link)
        db.commit()
        db.refresh(link)
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError('Email already registered.') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to register patient for professional %s', professional_id)
        raise PersistenceError() from exc

    logger.info('Private patient %s registered by professional %s', patient.id, professional_id)
    return link


def update_patient_notes(
    db: Session,
    professional_id: int,
    patient_id: int,
    notes: str | None,
) -> ProfessionalPatient:
    link = get_patient_link(db, professional_id, patient_id)
    if link is None:
        raise NotFoundError('Patient not found.')

    try:
        link.notes = notes
        db.commit()
        db.refresh(link)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update notes of patient %s', patient_id)
        raise PersistenceError() from exc

    return link


def list_patients(db: Session, professional_id: int) -> list[ProfessionalPatient]:
    try:
        return db.query(ProfessionalPatient).join(
            User, ProfessionalPatient.patient_id == User.id,
        ).filter(
            ProfessionalPatient.professional_id == professional_id,
        ).order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Failed to list patients for professional %s', professional_id)
        raise PersistenceError() from exc


def patient_history(db: Session, professional_id: int, patient_id: int) -> list[Appointment]:
    if not is_patient_linked(db, professional_id, patient_id):
        raise NotFoundError('Patient not found.')

    try:
        return db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.patient_id == patient_id,
        ).order_by(Appointment.start_time.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load history of patient %s', patient_id)
        raise PersistenceError() from exc
