"""
Reconciliation of stored and freshly expanded sessions.

Occurrences are deduplicated by (parent id, date), keeping the most final
status so a concluded session is never reverted by a stale write. Orphaned
occurrence groups get a virtual parent template.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .types import (
    Occurrence,
    RegularSession,
    Session,
    SessionKind,
    SessionTemplate,
    common_fields,
)

logger = logging.getLogger(__name__)


@dataclass
class Buckets:
    templates: Dict[int, SessionTemplate] = field(default_factory=dict)
    regular: Dict[Tuple, RegularSession] = field(default_factory=dict)
    occurrences: Dict[Tuple, Occurrence] = field(default_factory=dict)

    def occurrences_by_parent(self) -> Dict[int, List[Occurrence]]:
        groups: Dict[int, List[Occurrence]] = {}
        for occurrence in self.occurrences.values():
            groups.setdefault(occurrence.parent_session_id, []).append(occurrence)
        return groups


def _rank(session: Session) -> int:
    return session.status.rank if session.status is not None else -1


def partition(sessions: Iterable[Session]) -> Buckets:
    """
    Split sessions into templates, regular sessions and deduplicated occurrences.

    Later records replace earlier ones with the same key, except that an
    occurrence only replaces one whose status is not more final.
    """
    buckets = Buckets()
    for session in sessions:
        if session.kind is SessionKind.OCCURRENCE:
            existing = buckets.occurrences.get(session.key)
            if existing is None or _rank(session) >= _rank(existing):
                buckets.occurrences[session.key] = session
        elif session.kind is SessionKind.TEMPLATE:
            buckets.templates[session.id] = session
        else:
            buckets.regular[(session.id, session.date)] = session
    return buckets


def virtual_parent(parent_id: int, group: List[Occurrence]) -> SessionTemplate:
    """Synthesize a template for occurrences whose parent is missing."""
    first = group[0]
    values = common_fields(first)
    values.update(
        id=parent_id,
        date=min(occurrence.date for occurrence in group),
        status=None,
        attendance={},
        player_metrics={},
        extra=dict(first.extra),
    )
    return SessionTemplate(
        **values,
        recurring_end_date=first.recurring_end_date,
        selected_days=list(first.selected_days),
        total_occurrences=len(group),
        is_virtual=True,
    )


def heal_missing_parents(buckets: Buckets) -> int:
    """Add virtual parents for orphaned occurrence groups; return how many."""
    healed = 0
    for parent_id, group in buckets.occurrences_by_parent().items():
        if parent_id not in buckets.templates:
            buckets.templates[parent_id] = virtual_parent(parent_id, group)
            healed += 1
    if healed:
        logger.info("Synthesized %d virtual parent session(s)", healed)
    return healed


def reconcile(existing: Iterable[Session], fresh: Iterable[Session]) -> List[Session]:
    """
    Merge stored sessions with freshly expanded ones.

    Args:
        existing: Sessions already persisted
        fresh: Newly expanded sessions

    Returns:
        Templates, then regular sessions, then deduplicated occurrences
    """
    buckets = partition(list(existing) + list(fresh))
    heal_missing_parents(buckets)
    return [
        *buckets.templates.values(),
        *buckets.regular.values(),
        *buckets.occurrences.values(),
    ]
