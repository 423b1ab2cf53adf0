"""Agenda entitlement derived from the append-only subscription log.

The log is never updated in place: each approved payment appends a record
that is active for ``SUBSCRIPTION_PERIOD_DAYS`` from the approval. The
current status is a projection of the latest record against the wall clock,
so it is recomputed on every call instead of being stored or cached.
"""

import logging
import math
from datetime import datetime, timedelta

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.core import config
from agenda.core.exceptions import PersistenceError, SubscriptionRequiredError
from agenda.models.subscription import AgendaSubscription

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class SubscriptionStatus(BaseModel):
    status: str
    expires_at: datetime | None = None
    days_remaining: int
    can_book: bool
    last_payment: datetime | None = None


def project_status(record: AgendaSubscription | None, now: datetime) -> SubscriptionStatus:
    if record is None:
        return SubscriptionStatus(status='inactive', expires_at=None, days_remaining=0, can_book=False)

    remaining_seconds = (record.expires_at - now).total_seconds()
    days_remaining = max(0, math.ceil(remaining_seconds / SECONDS_PER_DAY))

    return SubscriptionStatus(
        status=record.status,
        expires_at=record.expires_at,
        days_remaining=days_remaining,
        can_book=record.status == 'active' and record.expires_at > now,
        last_payment=record.created_at,
    )


def latest_subscription(db: Session, professional_id: int) -> AgendaSubscription | None:
    try:
        return db.query(AgendaSubscription).filter(
            AgendaSubscription.professional_id == professional_id,
        ).order_by(
            AgendaSubscription.created_at.desc(),
            AgendaSubscription.id.desc(),
        ).first()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load subscription for professional %s', professional_id)
        raise PersistenceError() from exc


def evaluate_subscription(db: Session, professional_id: int, now: datetime | None = None) -> SubscriptionStatus:
    return project_status(latest_subscription(db, professional_id), now or datetime.now())


def require_booking_entitlement(db: Session, professional_id: int, now: datetime | None = None) -> SubscriptionStatus:
    subscription_status = evaluate_subscription(db, professional_id, now)
    if not subscription_status.can_book:
        logger.warning(
            'Booking denied for professional %s: subscription %s, expires %s',
            professional_id,
            subscription_status.status,
            subscription_status.expires_at,
        )
        raise SubscriptionRequiredError()
    return subscription_status


def record_payment_approval(
    db: Session,
    professional_id: int,
    approved_at: datetime,
    payment_reference: str | None = None,
) -> AgendaSubscription:
    """Append the subscription record produced by an approved payment."""
    subscription = AgendaSubscription(
        professional_id=professional_id,
        status='active',
        expires_at=approved_at + timedelta(days=config.SUBSCRIPTION_PERIOD_DAYS),
        payment_reference=payment_reference,
    )

    try:
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to record payment approval for professional %s', professional_id)
        raise PersistenceError() from exc

    logger.info(
        'Agenda subscription activated for professional %s until %s',
        professional_id,
        subscription.expires_at,
    )
    return subscription


def list_subscription_history(db: Session, professional_id: int) -> list[AgendaSubscription]:
    try:
        return db.query(AgendaSubscription).filter(
            AgendaSubscription.professional_id == professional_id,
        ).order_by(
            AgendaSubscription.created_at.desc(),
            AgendaSubscription.id.desc(),
        ).all()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load subscription history for professional %s', professional_id)
        raise PersistenceError() from exc
