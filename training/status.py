"""
Status classification of dated sessions against the wall clock.
"""

from datetime import date, datetime, time
from typing import Iterable, List, Optional, Tuple

from django.utils import timezone

from .types import Session, SessionKind, Status, with_status


def _make_aware_datetime(date_obj: date, time_obj: time) -> datetime:
    """Combine date and time into timezone-aware datetime."""
    dt = datetime.combine(date_obj, time_obj)
    return timezone.make_aware(dt)


def aware(now: datetime) -> datetime:
    """Interpret a naive datetime in the current time zone."""
    if timezone.is_naive(now):
        return timezone.make_aware(now)
    return now


def session_bounds(session: Session) -> Tuple[datetime, datetime]:
    """
    Start and end instants of a dated session in the local time zone.

    A session whose end time is earlier than its start time ends earlier on
    the same day, so the session is Finished from that end onwards.
    """
    return (
        _make_aware_datetime(session.date, session.start_time),
        _make_aware_datetime(session.date, session.end_time),
    )


def classify(session: Session, now: Optional[datetime] = None) -> Status:
    """
    Compute the lifecycle state of a session at `now`.

    Both boundaries belong to the On-going window: a session is Finished
    only strictly after its end. The end is checked first, so a session
    whose end time precedes its start time is Finished once that end passes.
    """
    now = aware(now or timezone.now())
    start, end = session_bounds(session)

    if now > end:
        return Status.FINISHED
    if now < start:
        return Status.UPCOMING
    return Status.ONGOING


def has_ended(session: Session, now: datetime) -> bool:
    return session_bounds(session)[1] < aware(now)


def annotate(sessions: Iterable[Session], now: Optional[datetime] = None) -> List[Session]:
    """Return copies of dated sessions with their status recomputed."""
    now = now or timezone.now()
    annotated = []
    for session in sessions:
        if session.kind is SessionKind.TEMPLATE:
            annotated.append(session)
        else:
            annotated.append(with_status(session, classify(session, now)))
    return annotated
