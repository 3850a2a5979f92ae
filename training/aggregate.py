"""
Per-template aggregates for the schedule views.
"""

from collections import Counter
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from django.utils import timezone

from .recurrence import iter_matching_dates
from .status import aware, classify, has_ended
from .types import Session, SessionKind, SessionSummary, SessionTemplate, Status


def occurrences_of(
    parent_id: int,
    sessions: Iterable[Session],
    status: Optional[Status] = None,
    now: Optional[datetime] = None,
) -> List[Session]:
    """
    Occurrences of a template in date order.

    Args:
        parent_id: Template id
        sessions: Sessions to search
        status: Only keep occurrences currently in this state
        now: Reference instant for the status filter
    """
    found = [
        s for s in sessions
        if s.kind is SessionKind.OCCURRENCE and s.parent_session_id == parent_id
    ]
    if status is not None:
        found = [s for s in found if classify(s, now) is status]
    return sorted(found, key=lambda s: (s.date, s.start_time))


def next_occurrence_date(template: SessionTemplate, today: date) -> Optional[date]:
    """First scheduled date strictly after today, or None."""
    if template.recurring_end_date is None:
        return None
    for candidate in iter_matching_dates(
        template.date, template.recurring_end_date, template.selected_days
    ):
        if candidate > today:
            return candidate
    return None


def last_finished_date(
    occurrences: Iterable[Session],
    parent_id: int,
    now: datetime,
) -> Optional[date]:
    """Date of the most recent occurrence of parent_id that has ended."""
    finished = [
        s for s in occurrences
        if s.kind is SessionKind.OCCURRENCE
        and s.parent_session_id == parent_id
        and has_ended(s, now)
    ]
    if not finished:
        return None
    return max(finished, key=lambda s: (s.date, s.end_time)).date


def completed_count(session: Session, sessions: Iterable[Session], now: datetime) -> int:
    """Number of finished sessions represented by `session`."""
    if session.kind is SessionKind.TEMPLATE:
        return sum(1 for s in occurrences_of(session.id, sessions) if has_ended(s, now))
    return 1 if has_ended(session, now) else 0


def status_counts(occurrences: Iterable[Session], now: datetime) -> Dict[Status, int]:
    counts = Counter(classify(s, now) for s in occurrences)
    return {status: counts.get(status, 0) for status in Status}


def summarize(template: SessionTemplate, sessions: Iterable[Session], now: datetime) -> SessionSummary:
    sessions = list(sessions)
    occurrences = occurrences_of(template.id, sessions)
    today = timezone.localdate(aware(now))
    return SessionSummary(
        parent_id=template.id,
        total=len(occurrences),
        completed=completed_count(template, occurrences, now),
        counts=status_counts(occurrences, now),
        next_date=next_occurrence_date(template, today),
        last_finished_date=last_finished_date(occurrences, template.id, now),
    )
