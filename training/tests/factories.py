"""Builders for session objects used across the test modules."""

from datetime import date, datetime, time

from django.utils import timezone

from training.types import Occurrence, RegularSession, SessionTemplate

ACADEMY = 'academy-1'


def aware(*args):
    return timezone.make_aware(datetime(*args))


def regular(**overrides):
    values = dict(
        id=1,
        name='Finishing drills',
        date=date(2024, 1, 1),
        start_time=time(9, 0),
        end_time=time(10, 0),
        academy_id=ACADEMY,
    )
    values.update(overrides)
    return RegularSession(**values)


def template(**overrides):
    values = dict(
        id=100,
        name='Weekly conditioning',
        date=date(2024, 1, 1),
        start_time=time(9, 0),
        end_time=time(10, 0),
        academy_id=ACADEMY,
        recurring_end_date=date(2024, 1, 14),
        selected_days=['monday', 'wednesday'],
    )
    values.update(overrides)
    return SessionTemplate(**values)


def occurrence(**overrides):
    values = dict(
        id=1001,
        name='Weekly conditioning',
        date=date(2024, 1, 1),
        start_time=time(9, 0),
        end_time=time(10, 0),
        academy_id=ACADEMY,
        recurring_end_date=date(2024, 1, 14),
        selected_days=['monday', 'wednesday'],
        parent_session_id=100,
    )
    values.update(overrides)
    return Occurrence(**values)


def session_data(**overrides):
    """Validated create-session input as produced by the serializer."""
    values = dict(
        name='Weekly conditioning',
        date=date(2024, 1, 1),
        start_time=time(9, 0),
        end_time=time(10, 0),
        assigned_players=['p1', 'p2'],
        coach_ids=['c1'],
        user_id='c1',
        is_recurring=True,
        recurring_end_date=date(2024, 1, 14),
        selected_days=['monday', 'wednesday'],
    )
    values.update(overrides)
    return values
