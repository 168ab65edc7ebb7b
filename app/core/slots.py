"""Appointment slot boundaries.

Every component that needs to know where a slot starts or ends goes through
these helpers, so the booked interval and the displayed interval never drift.
"""

from datetime import UTC, datetime, timedelta

# Fixed appointment slot length in minutes
SLOT_MINUTES = 30
SLOT_DURATION = timedelta(minutes=SLOT_MINUTES)


def as_utc(instant: datetime) -> datetime:
    """
    Normalize an instant to an aware UTC datetime.

    Naive values are read as UTC (the server clock).

    Args:
        instant: Datetime to normalize

    Returns:
        Aware datetime in UTC
    """
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def compute_ends_at(starts_at: datetime) -> datetime:
    """
    Compute the end of the slot starting at ``starts_at``.

    Args:
        starts_at: Slot start instant

    Returns:
        Slot end instant (start + SLOT_MINUTES)
    """
    return starts_at + SLOT_DURATION
