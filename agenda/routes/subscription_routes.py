import hmac
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.auth.dependencies import get_current_professional
from agenda.core import config
from agenda.core.exceptions import AgendaError
from agenda.models.user import User
from agenda.routes.agenda_routes import get_db, to_http_exception
from agenda.services import subscription
from agenda.services.subscription import SubscriptionStatus

router = APIRouter(tags=['subscription'])

logger = logging.getLogger(__name__)


class PaymentApprovedEvent(BaseModel):
    professional_id: int
    approved_at: datetime
    payment_reference: str | None = None


class SubscriptionRecordResponse(BaseModel):
    id: int
    status: str
    expires_at: datetime
    payment_reference: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


@router.get('/subscription-status', response_model=SubscriptionStatus)
def get_subscription_status(
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    try:
        return subscription.evaluate_subscription(db, professional.id)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.get('/subscription-history', response_model=list[SubscriptionRecordResponse])
def get_subscription_history(
    professional: User = Depends(get_current_professional),
    db: Session = Depends(get_db),
):
    try:
        return subscription.list_subscription_history(db, professional.id)
    except AgendaError as exc:
        raise to_http_exception(exc) from exc


@router.post('/payment-events', response_model=SubscriptionRecordResponse, status_code=status.HTTP_201_CREATED)
def receive_payment_approval(
    data: PaymentApprovedEvent,
    x_payment_event_token: str = Header(...),
    db: Session = Depends(get_db),
):
    if not hmac.compare_digest(x_payment_event_token.encode(), config.PAYMENT_EVENT_TOKEN.encode()):
        logger.warning('Rejected payment event for professional %s: bad token', data.professional_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid payment event token.')

    try:
        professional = db.query(User).filter(
            User.id == data.professional_id,
            User.role == 'professional',
        ).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc
    if professional is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Professional not found.')

    approved_at = data.approved_at
    if approved_at.tzinfo is not None:
        approved_at = approved_at.astimezone().replace(tzinfo=None)

    try:
        return subscription.record_payment_approval(
            db,
            data.professional_id,
            approved_at,
            data.payment_reference,
        )
    except AgendaError as exc:
        raise to_http_exception(exc) from exc
