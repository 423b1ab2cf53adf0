from datetime import date, datetime, time

from dateutil.relativedelta import relativedelta

from agenda.core import config
from agenda.core.exceptions import ValidationError
from agenda.models.appointment import RECURRENCE_PATTERNS

PATTERN_STEPS = {
    'weekly': relativedelta(weeks=1),
    'biweekly': relativedelta(weeks=2),
    'monthly': relativedelta(months=1),
}


def _end_bound(recurrence_end: date | datetime) -> datetime:
    # A bare date covers the whole day.
    if isinstance(recurrence_end, datetime):
        return recurrence_end
    return datetime.combine(recurrence_end, time.max)


def expand(base: datetime, pattern: str | None, recurrence_end: date | datetime | None) -> list[datetime]:
    """Occurrence timestamps of a recurring booking, starting with ``base``.

    Each step is computed from ``base`` rather than from the previous
    occurrence, so a monthly series started on the 31st lands on the last
    day of short months and returns to the 31st afterwards.
    """
    if pattern is None or recurrence_end is None:
        return [base]

    if pattern not in RECURRENCE_PATTERNS:
        raise ValidationError(f'Unsupported recurrence pattern: {pattern}.')

    step = PATTERN_STEPS[pattern]
    end = _end_bound(recurrence_end)
    occurrences = [base]
    index = 1

    while True:
        candidate = base + step * index
        if candidate > end:
            break
        if len(occurrences) >= config.MAX_RECURRENCE_OCCURRENCES:
            raise ValidationError(
                f'Recurring bookings are limited to {config.MAX_RECURRENCE_OCCURRENCES} occurrences.'
            )
        occurrences.append(candidate)
        index += 1

    return occurrences
