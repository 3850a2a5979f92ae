"""
Recurrence expansion: materialize dated occurrences from a session template.
"""

from datetime import date, timedelta
from typing import Iterator, List

from .types import (
    Occurrence,
    Session,
    SessionKind,
    common_fields,
    new_session_id,
    weekday_name,
)


def iter_matching_dates(start: date, end: date, selected_days) -> Iterator[date]:
    """Yield every date in [start, end] whose weekday is in selected_days."""
    wanted = {day.lower() for day in selected_days}
    current = start
    while current <= end:
        if weekday_name(current) in wanted:
            yield current
        current += timedelta(days=1)


def has_matching_day(start: date, end: date, selected_days) -> bool:
    """Check that at least one selected weekday falls inside the range."""
    return next(iter_matching_dates(start, end, selected_days), None) is not None


def expand(session: Session) -> List[Session]:
    """
    Expand a template into its occurrences.

    Anything that is not a template with selected days comes back as a
    single-element list holding the session itself. An inverted or open
    date range yields no occurrences.

    Args:
        session: Session to expand

    Returns:
        Occurrences in ascending date order
    """
    if session.kind is not SessionKind.TEMPLATE or not session.selected_days:
        return [session]

    if session.recurring_end_date is None:
        return []

    base = common_fields(session)
    occurrences = []
    for occurrence_date in iter_matching_dates(
        session.date, session.recurring_end_date, session.selected_days
    ):
        values = dict(base)
        values.update(
            id=new_session_id(),
            date=occurrence_date,
            status=None,
            assigned_players=list(session.assigned_players),
            coach_ids=list(session.coach_ids),
            attendance={},
            player_metrics={},
            extra=dict(session.extra),
        )
        occurrences.append(Occurrence(
            **values,
            recurring_end_date=session.recurring_end_date,
            selected_days=list(session.selected_days),
            parent_session_id=session.id,
        ))
    return occurrences
