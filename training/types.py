"""
Data types and constants for the training session service.

This module contains:
- The session record variants (regular session, recurring template, occurrence)
- Conversion between stored JSON documents and those variants
- Constants used across the application
"""

import enum
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Union

from django.utils.dateparse import parse_datetime

from .exceptions import MalformedSessionError


SESSIONS_COLLECTION = 'ams-sessions'
PLAYERS_COLLECTION = 'ams-player-data'
BATCHES_COLLECTION = 'ams-batches'

WEEKDAY_NAMES = [
    'monday',
    'tuesday',
    'wednesday',
    'thursday',
    'friday',
    'saturday',
    'sunday',
]

TIME_FORMAT = '%H:%M'

PRESENT = 'Present'
ABSENT = 'Absent'

DELETE_KEEP = 'keep'
DELETE_CASCADE = 'cascade'
DELETE_FUTURE = 'future'
DELETE_POLICIES = (DELETE_KEEP, DELETE_CASCADE, DELETE_FUTURE)

# Largest integer a JSON number can carry without losing precision.
_ID_BITS = 53


class Status(str, enum.Enum):
    """Lifecycle state of a dated session."""

    UPCOMING = 'Upcoming'
    ONGOING = 'On-going'
    FINISHED = 'Finished'

    @property
    def rank(self) -> int:
        """Finality order: Upcoming < On-going < Finished."""
        return _STATUS_RANK[self]


_STATUS_RANK = {Status.UPCOMING: 0, Status.ONGOING: 1, Status.FINISHED: 2}


class SessionKind(str, enum.Enum):
    REGULAR = 'regular'
    TEMPLATE = 'template'
    OCCURRENCE = 'occurrence'


@dataclass
class AttendanceMark:
    status: str
    marked_at: datetime
    marked_by: str


@dataclass
class RegularSession:
    """A one-off session on a single date."""

    id: int
    name: str
    date: date
    start_time: time
    end_time: time
    academy_id: str
    assigned_batch: Optional[str] = None
    assigned_players: List[str] = field(default_factory=list)
    coach_ids: List[str] = field(default_factory=list)
    user_id: str = ''
    status: Optional[Status] = None
    attendance: Dict[str, AttendanceMark] = field(default_factory=dict)
    player_metrics: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    kind = SessionKind.REGULAR


@dataclass
class SessionTemplate(RegularSession):
    """The authored definition of a repeating session."""

    recurring_end_date: Optional[date] = None
    selected_days: List[str] = field(default_factory=list)
    total_occurrences: Optional[int] = None
    is_virtual: bool = False

    kind = SessionKind.TEMPLATE


@dataclass
class Occurrence(SessionTemplate):
    """One dated instance materialized from a template."""

    parent_session_id: Optional[int] = None

    kind = SessionKind.OCCURRENCE

    @property
    def key(self):
        return (self.parent_session_id, self.date)


Session = Union[RegularSession, SessionTemplate, Occurrence]


def new_session_id() -> int:
    """Return a random numeric surrogate id that fits in a JSON number."""
    return uuid.uuid4().int >> (128 - _ID_BITS)


def canonical_id(value) -> str:
    """
    String form used to compare and index document ids.

    Integral floats, including exponent strings such as '1.7e+26' written
    by older clients, collapse to their integer digits.
    """
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value)
    if isinstance(value, str) and not text.isdigit():
        try:
            number = float(text)
        except ValueError:
            return text
        if number.is_integer():
            return str(int(number))
    return text


def normalize_weekdays(days) -> List[str]:
    """
    Lower-case and validate weekday names.

    Raises:
        ValueError: If a name is not a full English weekday name
    """
    normalized = []
    for day in days or []:
        name = str(day).strip().lower()
        if name not in WEEKDAY_NAMES:
            raise ValueError(f"Unknown weekday: {day!r}")
        if name not in normalized:
            normalized.append(name)
    return normalized


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # Accept full ISO timestamps as written by older dashboards.
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise MalformedSessionError(f"Invalid date: {value!r}") from exc


def parse_time(value) -> time:
    if isinstance(value, time):
        return value
    try:
        return datetime.strptime(str(value), TIME_FORMAT).time()
    except ValueError as exc:
        raise MalformedSessionError(f"Invalid time of day: {value!r}") from exc


def format_time(value: time) -> str:
    return value.strftime(TIME_FORMAT)


def _as_list(value) -> List[str]:
    if value is None or value == '':
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _as_status(value) -> Optional[Status]:
    try:
        return Status(value)
    except ValueError:
        return None


def _as_int(value, name):
    try:
        return int(canonical_id(value))
    except (TypeError, ValueError) as exc:
        raise MalformedSessionError(f"Invalid {name}: {value!r}") from exc


# Stored document keys consumed by session_from_record; anything else is
# carried through in `extra`.
_KNOWN_KEYS = {
    '_id', 'id', 'kind', 'name', 'date', 'occurrenceDate', 'startTime',
    'endTime', 'academyId', 'assignedBatch', 'assignedPlayers', 'coachId',
    'userId', 'status', 'attendance', 'playerMetrics', 'isRecurring',
    'isOccurrence', 'parentSessionId', 'recurringEndDate', 'selectedDays',
    'totalOccurrences', 'isVirtual',
}


def record_kind(record: Dict[str, Any]) -> SessionKind:
    """Determine the variant of a stored document."""
    if record.get('kind'):
        return SessionKind(record['kind'])
    if record.get('isOccurrence') and record.get('parentSessionId'):
        return SessionKind.OCCURRENCE
    if record.get('isRecurring') and not record.get('isOccurrence'):
        return SessionKind.TEMPLATE
    return SessionKind.REGULAR


def _attendance_from_record(raw) -> Dict[str, AttendanceMark]:
    attendance = {}
    for player_id, mark in (raw or {}).items():
        marked_at = mark.get('markedAt')
        attendance[str(player_id)] = AttendanceMark(
            status=mark.get('status', ABSENT),
            marked_at=parse_datetime(marked_at) if marked_at else None,
            marked_by=mark.get('markedBy', ''),
        )
    return attendance


def session_from_record(record: Dict[str, Any]) -> Session:
    """
    Build a typed session from a stored document.

    Raises:
        MalformedSessionError: If required fields are missing or unparsable
    """
    try:
        kind = record_kind(record)
    except ValueError as exc:
        raise MalformedSessionError(f"Unknown session kind: {record.get('kind')!r}") from exc

    if record.get('id') is None:
        raise MalformedSessionError("Session document has no id")

    raw_date = record.get('occurrenceDate') or record.get('date')
    if kind is not SessionKind.OCCURRENCE:
        raw_date = record.get('date')

    status = record.get('status')
    common = dict(
        id=_as_int(record['id'], 'id'),
        name=record.get('name', ''),
        date=parse_date(raw_date),
        start_time=parse_time(record.get('startTime')),
        end_time=parse_time(record.get('endTime')),
        academy_id=str(record.get('academyId', '')),
        assigned_batch=record.get('assignedBatch') or None,
        assigned_players=_as_list(record.get('assignedPlayers')),
        coach_ids=_as_list(record.get('coachId')),
        user_id=str(record.get('userId') or ''),
        status=_as_status(status),
        attendance=_attendance_from_record(record.get('attendance')),
        player_metrics=dict(record.get('playerMetrics') or {}),
        extra={k: v for k, v in record.items() if k not in _KNOWN_KEYS},
    )

    if kind is SessionKind.REGULAR:
        return RegularSession(**common)

    end_date = record.get('recurringEndDate')
    recurring = dict(
        recurring_end_date=parse_date(end_date) if end_date else None,
        selected_days=[str(d).lower() for d in record.get('selectedDays') or []],
        total_occurrences=record.get('totalOccurrences'),
        is_virtual=bool(record.get('isVirtual', False)),
    )
    if kind is SessionKind.TEMPLATE:
        return SessionTemplate(**common, **recurring)

    return Occurrence(
        **common,
        **recurring,
        parent_session_id=_as_int(record.get('parentSessionId'), 'parentSessionId'),
    )


def session_to_record(session: Session) -> Dict[str, Any]:
    """Serialize a typed session to its stored document form."""
    record = dict(session.extra)
    record.update({
        'id': session.id,
        'kind': session.kind.value,
        'name': session.name,
        'date': session.date.isoformat(),
        'startTime': format_time(session.start_time),
        'endTime': format_time(session.end_time),
        'academyId': session.academy_id,
        'assignedBatch': session.assigned_batch,
        'assignedPlayers': list(session.assigned_players),
        'coachId': list(session.coach_ids),
        'userId': session.user_id,
        'status': session.status.value if session.status else None,
        'attendance': {
            player_id: {
                'status': mark.status,
                'markedAt': mark.marked_at.isoformat() if mark.marked_at else None,
                'markedBy': mark.marked_by,
            }
            for player_id, mark in session.attendance.items()
        },
        'playerMetrics': dict(session.player_metrics),
        'isRecurring': isinstance(session, SessionTemplate),
        'isOccurrence': isinstance(session, Occurrence),
    })

    if isinstance(session, SessionTemplate):
        record.update({
            'recurringEndDate': (
                session.recurring_end_date.isoformat()
                if session.recurring_end_date else None
            ),
            'selectedDays': list(session.selected_days),
            'totalOccurrences': session.total_occurrences,
        })
        if session.is_virtual:
            record['isVirtual'] = True

    if isinstance(session, Occurrence):
        record['parentSessionId'] = session.parent_session_id
        record['occurrenceDate'] = session.date.isoformat()

    return record


def common_fields(session: Session) -> Dict[str, Any]:
    """Field values shared by every session variant."""
    return {f.name: getattr(session, f.name) for f in fields(RegularSession)}


def with_status(session: Session, status: Status) -> Session:
    return replace(session, status=status)


@dataclass
class SessionSummary:
    """Aggregated view of a template and its occurrences."""

    parent_id: int
    total: int
    completed: int
    counts: Dict[Status, int]
    next_date: Optional[date] = None
    last_finished_date: Optional[date] = None


@dataclass
class SessionChanges:
    """DTO for session update operations."""
    name: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    coach_ids: Optional[List[str]] = None
    assigned_players: Optional[List[str]] = None
    assigned_batch: Optional[str] = None


@dataclass
class DeleteResult:
    session_id: int
    policy: str
    occurrences_deleted: int = 0


@dataclass
class SyncReport:
    academies: int = 0
    status_updates: int = 0
    occurrences_created: int = 0
    duplicates_removed: int = 0
    skipped: int = 0
