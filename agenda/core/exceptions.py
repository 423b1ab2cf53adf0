"""Domain errors raised by the agenda services.

Each error carries the user-facing message and the HTTP status the routes
translate it to. Services never retry; callers decide what to do.
"""

from datetime import datetime

from fastapi import status


class AgendaError(Exception):
    """Base class for every error the agenda core reports to its caller."""

    default_message = 'Unexpected agenda error.'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AgendaError):
    default_message = 'Invalid request.'
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AgendaError):
    default_message = 'Resource not found.'
    status_code = status.HTTP_404_NOT_FOUND


class LinkError(AgendaError):
    default_message = 'Patient is not linked to this professional.'
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AgendaError):
    default_message = 'This time slot is already booked.'
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, occurrence: datetime | None = None, message: str | None = None):
        self.occurrence = occurrence
        if message is None and occurrence is not None:
            message = f'This time slot is already booked ({occurrence:%Y-%m-%d %H:%M}).'
        super().__init__(message)


class SubscriptionRequiredError(AgendaError):
    default_message = 'An active agenda subscription is required to book appointments.'
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class PersistenceError(AgendaError):
    default_message = 'Database unavailable. Please try again later.'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
