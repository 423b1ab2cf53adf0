import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core.exceptions import PersistenceError
from agenda.models.location import ProfessionalLocation

logger = logging.getLogger(__name__)


def get_location(db: Session, professional_id: int, location_id: int) -> ProfessionalLocation | None:
    try:
        return db.query(ProfessionalLocation).filter(
            ProfessionalLocation.id == location_id,
            ProfessionalLocation.professional_id == professional_id,
        ).first()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load location %s', location_id)
        raise PersistenceError() from exc


def list_locations(db: Session, professional_id: int) -> list[ProfessionalLocation]:
    try:
        return db.query(ProfessionalLocation).filter(
            ProfessionalLocation.professional_id == professional_id,
        ).order_by(ProfessionalLocation.is_main.desc(), ProfessionalLocation.clinic_name.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Failed to list locations for professional %s', professional_id)
        raise PersistenceError() from exc


def create_location(
    db: Session,
    professional_id: int,
    clinic_name: str,
    address: str | None = None,
    city: str | None = None,
    state: str | None = None,
    phone: str | None = None,
    is_main: bool = False,
) -> ProfessionalLocation:
    """Add a location. The first one, or any flagged main, becomes the main location."""
    try:
        existing = list_locations(db, professional_id)
        is_main = is_main or not existing
        if is_main:
            for location in existing:
                location.is_main = False

        location = ProfessionalLocation(
            professional_id=professional_id,
            clinic_name=clinic_name,
            address=address,
            city=city,
            state=state,
            phone=phone,
            is_main=is_main,
        )
        db.add(location)
        db.commit()
        db.refresh(location)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create location for professional %s', professional_id)
        raise PersistenceError() from exc

    return location
