"""
Service layer for training session business logic.
Services are framework-agnostic and handle all business operations.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .aggregate import completed_count, occurrences_of, summarize
from .cache import ExpiringCache
from .exceptions import (
    MalformedSessionError,
    PlayerNotFound,
    SessionNotFound,
    StoreUnavailable,
)
from .models import Document
from .reconcile import partition, reconcile
from .recurrence import expand, has_matching_day
from .status import annotate, aware, classify, has_ended
from .store import DocumentStore
from .types import (
    ABSENT,
    BATCHES_COLLECTION,
    DELETE_FUTURE,
    DELETE_KEEP,
    DELETE_POLICIES,
    PLAYERS_COLLECTION,
    PRESENT,
    SESSIONS_COLLECTION,
    AttendanceMark,
    DeleteResult,
    RegularSession,
    Session,
    SessionChanges,
    SessionKind,
    SessionSummary,
    SessionTemplate,
    Status,
    SyncReport,
    format_time,
    new_session_id,
    normalize_weekdays,
    session_from_record,
    session_to_record,
    with_status,
)

logger = logging.getLogger(__name__)


def _sessions(academy_id) -> DocumentStore:
    return DocumentStore(SESSIONS_COLLECTION, academy_id)


def _players(academy_id) -> DocumentStore:
    return DocumentStore(PLAYERS_COLLECTION, academy_id)


def _batches(academy_id) -> DocumentStore:
    return DocumentStore(BATCHES_COLLECTION, academy_id)


def _parse_records(records) -> Tuple[List[Session], int]:
    """Parse stored documents, skipping the ones that cannot be read."""
    sessions = []
    skipped = 0
    for record in records:
        try:
            sessions.append(session_from_record(record))
        except MalformedSessionError as exc:
            skipped += 1
            logger.warning("Skipping session document %s: %s", record.get('id'), exc.message)
    return sessions, skipped


def _load_sessions(store: DocumentStore, query=None) -> List[Session]:
    return _parse_records(store.find(query))[0]


def _validate_session_data(data: Dict[str, Any]) -> None:
    """Validate session creation data."""
    if not data.get('name'):
        raise ValueError("Session name is required")

    for required in ('date', 'start_time', 'end_time'):
        if data.get(required) is None:
            raise ValueError(f"{required} is required")

    if not data.get('is_recurring'):
        return

    selected_days = normalize_weekdays(data.get('selected_days'))
    if not selected_days:
        raise ValueError("Recurring sessions need at least one selected day")

    end_date = data.get('recurring_end_date')
    if end_date is None:
        raise ValueError("Recurring sessions need an end date")
    if end_date < data['date']:
        raise ValueError("Recurring end date must not be before the start date")
    if not has_matching_day(data['date'], end_date, selected_days):
        raise ValueError("None of the selected days falls between the start and end dates")


def _build_session(academy_id, data: Dict[str, Any]) -> Session:
    common = dict(
        id=data.get('id') or new_session_id(),
        name=data['name'],
        date=data['date'],
        start_time=data['start_time'],
        end_time=data['end_time'],
        academy_id=str(academy_id),
        assigned_batch=data.get('assigned_batch') or None,
        assigned_players=[str(p) for p in data.get('assigned_players') or []],
        coach_ids=[str(c) for c in data.get('coach_ids') or []],
        user_id=str(data.get('user_id') or ''),
    )
    if data.get('is_recurring'):
        return SessionTemplate(
            **common,
            recurring_end_date=data['recurring_end_date'],
            selected_days=normalize_weekdays(data['selected_days']),
        )
    return RegularSession(**common)


def _persist_new_occurrences(
    store: DocumentStore,
    template: SessionTemplate,
    fresh: List[Session],
) -> List[Session]:
    """Insert the occurrences of `fresh` whose (parent, date) is not stored yet."""
    existing = _load_sessions(store, {'parentSessionId': template.id, 'isOccurrence': True})
    stored_keys = {s.key for s in existing if s.kind is SessionKind.OCCURRENCE}

    created = []
    for session in partition(existing + fresh).occurrences.values():
        if session.key not in stored_keys:
            store.insert_one(session_to_record(session))
            created.append(session)
    return created


@transaction.atomic
def create_session(
    academy_id,
    data: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Tuple[Session, int]:
    """
    Create a regular session or a recurring template with its occurrences.

    Args:
        academy_id: Owning academy
        data: Validated session fields (snake_case)
        now: Reference instant for status classification

    Returns:
        Tuple of (created session, number of occurrences created)

    Raises:
        ValueError: If validation fails
    """
    now = aware(now or timezone.now())
    _validate_session_data(data)

    session = _build_session(academy_id, data)
    store = _sessions(academy_id)

    if session.kind is not SessionKind.TEMPLATE:
        session = with_status(session, classify(session, now))
        store.insert_one(session_to_record(session))
        logger.info("Created session %s for academy %s", session.id, academy_id)
        return session, 0

    occurrences = annotate(expand(session), now)
    session = replace(session, total_occurrences=len(occurrences))
    store.insert_one(session_to_record(session))
    created = _persist_new_occurrences(store, session, occurrences)

    logger.info(
        "Created recurring session %s for academy %s with %d occurrence(s)",
        session.id, academy_id, len(created),
    )
    return session, len(created)


def _ensure_occurrences(store: DocumentStore, sessions: List[Session], now: datetime) -> List[Session]:
    """Materialize occurrences for templates that have none stored."""
    buckets = partition(sessions)
    materialized = set(buckets.occurrences_by_parent())

    created = []
    for template in buckets.templates.values():
        if template.id in materialized:
            continue
        fresh = annotate(expand(template), now)
        if fresh:
            logger.info("Regenerating %d occurrence(s) for session %s", len(fresh), template.id)
        created.extend(_persist_new_occurrences(store, template, fresh))
    return created


def list_sessions(academy_id, now: Optional[datetime] = None) -> List[Session]:
    """
    All sessions of an academy with current statuses.

    Missing occurrences are regenerated and persisted; duplicate stored
    occurrences are collapsed in the result.
    """
    now = aware(now or timezone.now())
    store = _sessions(academy_id)
    sessions = _load_sessions(store)
    fresh = _ensure_occurrences(store, sessions, now)
    return reconcile(annotate(sessions, now), fresh)


def get_session(academy_id, session_id, now: Optional[datetime] = None) -> Session:
    """
    Get one session with its current status.

    Raises:
        SessionNotFound: If the academy has no such session
    """
    record = _sessions(academy_id).find_one({'id': session_id})
    if record is None:
        raise SessionNotFound(f"Session {session_id} not found")
    session = session_from_record(record)
    return annotate([session], now or timezone.now())[0]


def _changes_to_fields(changes: SessionChanges) -> Dict[str, Any]:
    fields = {
        'name': changes.name,
        'startTime': format_time(changes.start_time) if changes.start_time else None,
        'endTime': format_time(changes.end_time) if changes.end_time else None,
        'coachId': changes.coach_ids,
        'assignedPlayers': changes.assigned_players,
        'assignedBatch': changes.assigned_batch,
    }
    return {key: value for key, value in fields.items() if value is not None}


@transaction.atomic
def update_session(
    academy_id,
    session_id,
    changes: SessionChanges,
    update_future_occurrences: bool = True,
    now: Optional[datetime] = None,
) -> Session:
    """
    Update a session.

    For a template, occurrences that have not finished yet receive the same
    changes when update_future_occurrences is set.

    Raises:
        SessionNotFound: If the academy has no such session
    """
    now = aware(now or timezone.now())
    session = get_session(academy_id, session_id, now)
    fields = _changes_to_fields(changes)
    if not fields:
        return session

    store = _sessions(academy_id)
    store.update_one({'id': session.id}, {'$set': fields})

    if update_future_occurrences and session.kind is SessionKind.TEMPLATE:
        _update_future_occurrences(store, session, fields, now)

    return get_session(academy_id, session_id, now)


def _update_future_occurrences(store, template, fields, now) -> int:
    """Apply template changes to its occurrences that are not finished."""
    updated = 0
    for occurrence in _load_sessions(store, {'parentSessionId': template.id}):
        if classify(occurrence, now) is not Status.FINISHED:
            updated += store.update_one({'id': occurrence.id}, {'$set': fields})
    logger.info("Updated %d future occurrence(s) of session %s", updated, template.id)
    return updated


@transaction.atomic
def delete_session(
    academy_id,
    session_id,
    policy: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DeleteResult:
    """
    Delete a session.

    Args:
        academy_id: Owning academy
        session_id: Session to delete
        policy: What happens to a template's occurrences:
                'keep' leaves them, 'cascade' deletes all of them,
                'future' deletes those that have not finished

    Raises:
        SessionNotFound: If the academy has no such session
        ValueError: If the policy is unknown
    """
    policy = policy or settings.SESSION_DELETE_POLICY
    if policy not in DELETE_POLICIES:
        raise ValueError(f"Unknown delete policy: {policy!r}")

    now = aware(now or timezone.now())
    session = get_session(academy_id, session_id, now)
    store = _sessions(academy_id)
    store.delete_one({'id': session.id})

    result = DeleteResult(session_id=session.id, policy=policy)
    if session.kind is not SessionKind.TEMPLATE or policy == DELETE_KEEP:
        return result

    occurrences = _load_sessions(store, {'parentSessionId': session.id, 'isOccurrence': True})
    if policy == DELETE_FUTURE:
        occurrences = [o for o in occurrences if classify(o, now) is not Status.FINISHED]
    if occurrences:
        result.occurrences_deleted = store.delete_many({'id': {'$in': [o.id for o in occurrences]}})

    logger.info(
        "Deleted session %s (%s): %d occurrence(s) removed",
        session.id, policy, result.occurrences_deleted,
    )
    return result


def _academies_with_sessions() -> List[str]:
    return list(Document.objects.in_collection(SESSIONS_COLLECTION).academies())


def sync_statuses(academy_id=None, now: Optional[datetime] = None) -> SyncReport:
    """
    Refresh stored session state for one or all academies.

    Removes duplicate stored occurrences, regenerates missing ones and
    persists status changes.
    """
    now = aware(now or timezone.now())
    academies = [academy_id] if academy_id else _academies_with_sessions()
    report = SyncReport()

    for academy in academies:
        store = _sessions(academy)
        sessions, skipped = _parse_records(store.find())
        report.skipped += skipped

        buckets = partition(sessions)
        kept = {o.id for o in buckets.occurrences.values()}
        losers = [s.id for s in sessions if s.kind is SessionKind.OCCURRENCE and s.id not in kept]
        if losers:
            report.duplicates_removed += store.delete_many({'id': {'$in': losers}})

        report.occurrences_created += len(_ensure_occurrences(store, sessions, now))

        for session in [*buckets.regular.values(), *buckets.occurrences.values()]:
            current = classify(session, now)
            if current is not session.status:
                report.status_updates += store.update_one(
                    {'id': session.id}, {'$set': {'status': current.value}}
                )
        report.academies += 1

    logger.info(
        "Synced %d academies: %d status update(s), %d occurrence(s) created, %d duplicate(s) removed",
        report.academies, report.status_updates, report.occurrences_created,
        report.duplicates_removed,
    )
    return report


def mark_attendance(
    academy_id,
    session_id,
    marks: Dict[str, bool],
    marked_by: str,
    session: Optional[Session] = None,
    now: Optional[datetime] = None,
) -> Session:
    """
    Record Present / Absent for players of a session.

    The marks are applied to the in-memory session first and then written;
    if the write fails the session's previous attendance is restored.

    Args:
        marks: player id -> True for Present, False for Absent
        marked_by: User recording the attendance
        session: Already loaded session to update in place

    Raises:
        SessionNotFound: If the academy has no such session
        StoreUnavailable: If the write failed
    """
    if not marks:
        raise ValueError("No attendance marks given")

    now = aware(now or timezone.now())
    if session is None:
        session = get_session(academy_id, session_id, now)

    previous = dict(session.attendance)
    for player_id, present in marks.items():
        session.attendance[str(player_id)] = AttendanceMark(
            status=PRESENT if present else ABSENT,
            marked_at=now,
            marked_by=str(marked_by),
        )

    stored = session_to_record(session)['attendance']
    fields = {f'attendance.{player_id}': stored[str(player_id)] for player_id in marks}
    fields['lastUpdated'] = now.isoformat()

    try:
        matched = _sessions(academy_id).update_one({'id': session.id}, {'$set': fields})
    except StoreUnavailable:
        session.attendance = previous
        logger.warning("Attendance update for session %s failed, rolled back", session.id)
        raise

    if not matched:
        session.attendance = previous
        raise SessionNotFound(f"Session {session_id} not found")
    return session


def session_players(academy_id, session: Session) -> List[Dict[str, Any]]:
    """Player documents assigned to a session, directly or through its batch."""
    player_ids = list(session.assigned_players)
    if not player_ids and session.assigned_batch:
        batch = _batches(academy_id).find_one({'id': session.assigned_batch})
        if batch is None:
            logger.warning("Batch %s of session %s not found", session.assigned_batch, session.id)
        else:
            player_ids = [str(p) for p in batch.get('players') or []]

    if not player_ids:
        return []

    players = _players(academy_id).find({'id': {'$in': player_ids}})
    return [
        {
            **player,
            'name': player.get('name') or player.get('username') or 'Unknown Player',
            'position': player.get('position') or 'Unassigned',
        }
        for player in players
    ]


def _metrics_key(academy_id, player_id, session_id):
    return (str(academy_id), str(player_id), str(session_id))


@transaction.atomic
def update_session_metrics(
    academy_id,
    player_id,
    session_id,
    attributes: Dict[str, Any],
    session_rating=None,
    overall=None,
    metric_type: str = 'training',
    on_date: Optional[date] = None,
    cache: Optional[ExpiringCache] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Record a player's metrics for a session.

    Updates the player's current attributes, appends to their performance
    history and stores the metrics on the session.

    Returns:
        The updated player document

    Raises:
        PlayerNotFound: If the academy has no such player
    """
    if not attributes:
        raise ValueError("attributes are required")

    now = aware(now or timezone.now())
    entry = {
        'date': (on_date or timezone.localdate(now)).isoformat(),
        'sessionId': session_id,
        'attributes': attributes,
        'sessionRating': session_rating,
        'overall': overall,
        'type': metric_type,
        'updatedAt': now.isoformat(),
    }
    player_fields = {'attributes': attributes, 'lastUpdated': now.isoformat()}
    if overall is not None:
        player_fields['overallRating'] = overall

    players = _players(academy_id)
    matched = players.update_one(
        {'id': player_id},
        {'$set': player_fields, '$push': {'performanceHistory': entry}},
    )
    if not matched:
        raise PlayerNotFound(f"Player {player_id} not found")

    session_metrics = dict(attributes)
    if session_rating is not None:
        session_metrics['sessionRating'] = session_rating
    if not _sessions(academy_id).update_one(
        {'id': session_id}, {'$set': {f'playerMetrics.{player_id}': session_metrics}}
    ):
        logger.warning("Session %s not found while storing metrics for player %s", session_id, player_id)

    if cache is not None:
        cache.invalidate(_metrics_key(academy_id, player_id, session_id))

    return players.find_one({'id': player_id})


def get_player_metrics(
    academy_id,
    player_id,
    session_id,
    cache: Optional[ExpiringCache] = None,
) -> Dict[str, Any]:
    """
    A player's metrics for a session.

    Falls back to the player's current attributes when nothing was recorded
    for the session.

    Raises:
        PlayerNotFound: If the academy has no such player
    """
    def load():
        record = _sessions(academy_id).find_one({'id': session_id})
        if record is not None:
            recorded = (record.get('playerMetrics') or {}).get(str(player_id))
            if recorded:
                return dict(recorded)
        player = _players(academy_id).find_one({'id': player_id})
        if player is None:
            raise PlayerNotFound(f"Player {player_id} not found")
        return dict(player.get('attributes') or {})

    if cache is None:
        return load()
    return cache.get_or_load(_metrics_key(academy_id, player_id, session_id), load)


def _find(sessions: List[Session], session_id, kind: Optional[SessionKind] = None) -> Optional[Session]:
    for session in sessions:
        if str(session.id) == str(session_id) and (kind is None or session.kind is kind):
            return session
    return None


def session_summary(academy_id, session_id, now: Optional[datetime] = None) -> SessionSummary:
    """
    Counts and next / last dates for a session.

    An occurrence is summarized through its parent template.

    Raises:
        SessionNotFound: If the academy has no such session
    """
    now = aware(now or timezone.now())
    sessions = list_sessions(academy_id, now)
    session = _find(sessions, session_id)
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found")

    if session.kind is SessionKind.OCCURRENCE:
        session = _find(sessions, session.parent_session_id, SessionKind.TEMPLATE)

    if session.kind is SessionKind.TEMPLATE:
        return summarize(session, sessions, now)

    status = classify(session, now)
    today = timezone.localdate(now)
    return SessionSummary(
        parent_id=session.id,
        total=1,
        completed=completed_count(session, sessions, now),
        counts={s: int(s is status) for s in Status},
        next_date=session.date if session.date > today else None,
        last_finished_date=session.date if has_ended(session, now) else None,
    )


def session_occurrences(
    academy_id,
    parent_id,
    status: Optional[Status] = None,
    now: Optional[datetime] = None,
) -> List[Session]:
    """
    Occurrences of a recurring session, optionally only those in `status`.

    Raises:
        SessionNotFound: If the academy has no such recurring session
    """
    now = aware(now or timezone.now())
    sessions = list_sessions(academy_id, now)
    if _find(sessions, parent_id, SessionKind.TEMPLATE) is None:
        raise SessionNotFound(f"Recurring session {parent_id} not found")
    return occurrences_of(int(parent_id), sessions, status, now)
