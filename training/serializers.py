"""
Serializers for the training session API.
"""

from rest_framework import serializers

from .recurrence import has_matching_day
from .types import (
    DELETE_POLICIES,
    TIME_FORMAT,
    WEEKDAY_NAMES,
    SessionKind,
    Status,
)


class TimeOfDayField(serializers.TimeField):
    """HH:MM time of day."""

    def __init__(self, **kwargs):
        kwargs.setdefault('format', TIME_FORMAT)
        kwargs.setdefault('input_formats', [TIME_FORMAT])
        super().__init__(**kwargs)


class StatusField(serializers.ChoiceField):
    def __init__(self, **kwargs):
        super().__init__(choices=[s.value for s in Status], **kwargs)

    def to_internal_value(self, data):
        return Status(super().to_internal_value(data))

    def to_representation(self, value):
        return value.value if isinstance(value, Status) else value


class AttendanceMarkSerializer(serializers.Serializer):
    status = serializers.CharField()
    marked_at = serializers.DateTimeField(allow_null=True)
    marked_by = serializers.CharField(allow_blank=True)


class RegularSessionReadSerializer(serializers.Serializer):
    """Serializer for reading/displaying a one-off session (output)."""

    id = serializers.IntegerField()
    kind = serializers.CharField(source='kind.value')
    name = serializers.CharField()
    date = serializers.DateField()
    start_time = TimeOfDayField()
    end_time = TimeOfDayField()
    academy_id = serializers.CharField()
    assigned_batch = serializers.CharField(allow_null=True)
    assigned_players = serializers.ListField(child=serializers.CharField())
    coach_ids = serializers.ListField(child=serializers.CharField())
    status = StatusField(allow_null=True)
    attendance = serializers.DictField(child=AttendanceMarkSerializer())
    player_metrics = serializers.DictField()


class SessionTemplateReadSerializer(RegularSessionReadSerializer):
    """Serializer for reading/displaying a recurring session (output)."""

    recurring_end_date = serializers.DateField(allow_null=True)
    selected_days = serializers.ListField(child=serializers.CharField())
    total_occurrences = serializers.IntegerField(allow_null=True)
    is_virtual = serializers.BooleanField()


class OccurrenceReadSerializer(SessionTemplateReadSerializer):
    """Serializer for reading/displaying one occurrence (output)."""

    parent_session_id = serializers.IntegerField()


_READ_SERIALIZERS = {
    SessionKind.REGULAR: RegularSessionReadSerializer,
    SessionKind.TEMPLATE: SessionTemplateReadSerializer,
    SessionKind.OCCURRENCE: OccurrenceReadSerializer,
}


def serialize_session(session):
    return _READ_SERIALIZERS[session.kind](session).data


def serialize_sessions(sessions):
    return [serialize_session(session) for session in sessions]


class SessionCreateSerializer(serializers.Serializer):
    """Serializer for creating a regular or recurring session."""

    name = serializers.CharField(max_length=200)
    date = serializers.DateField()
    start_time = TimeOfDayField()
    end_time = TimeOfDayField()
    assigned_batch = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    assigned_players = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )
    coach_ids = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )
    user_id = serializers.CharField(required=False, allow_blank=True, default='')
    is_recurring = serializers.BooleanField(default=False)
    recurring_end_date = serializers.DateField(required=False, allow_null=True)
    selected_days = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )

    def validate_selected_days(self, value):
        days = [day.strip().lower() for day in value]
        unknown = [day for day in days if day not in WEEKDAY_NAMES]
        if unknown:
            raise serializers.ValidationError(f"Unknown weekday(s): {', '.join(unknown)}")
        return list(dict.fromkeys(days))

    def validate(self, data):
        """Validate recurring session data."""
        if not data.get('is_recurring'):
            return data

        errors = {}
        end_date = data.get('recurring_end_date')
        if not data.get('selected_days'):
            errors['selected_days'] = 'Select at least one day for a recurring session.'
        if end_date is None:
            errors['recurring_end_date'] = 'Recurring sessions need an end date.'
        elif end_date < data['date']:
            errors['recurring_end_date'] = 'End date must not be before start date.'
        elif data.get('selected_days') and not has_matching_day(
            data['date'], end_date, data['selected_days']
        ):
            errors['selected_days'] = 'None of the selected days falls within the date range.'

        if errors:
            raise serializers.ValidationError(errors)
        return data


class SessionUpdateSerializer(serializers.Serializer):
    """Serializer for updating a session."""

    name = serializers.CharField(max_length=200, required=False)
    start_time = TimeOfDayField(required=False)
    end_time = TimeOfDayField(required=False)
    coach_ids = serializers.ListField(child=serializers.CharField(), required=False)
    assigned_players = serializers.ListField(child=serializers.CharField(), required=False)
    assigned_batch = serializers.CharField(required=False, allow_blank=True)
    update_future_occurrences = serializers.BooleanField(default=True)


class SessionDeleteQuerySerializer(serializers.Serializer):
    occurrences = serializers.ChoiceField(choices=DELETE_POLICIES, required=False)


class StatusQuerySerializer(serializers.Serializer):
    status = StatusField(required=False)


class AttendanceSerializer(serializers.Serializer):
    """Serializer for marking attendance of one or more players."""

    marks = serializers.DictField(child=serializers.BooleanField(), allow_empty=False)
    marked_by = serializers.CharField()


class MetricsQuerySerializer(serializers.Serializer):
    session_id = serializers.IntegerField()


class MetricsUpdateSerializer(serializers.Serializer):
    """Serializer for recording a player's session metrics."""

    session_id = serializers.IntegerField()
    attributes = serializers.DictField(allow_empty=False)
    session_rating = serializers.FloatField(required=False, allow_null=True)
    overall = serializers.FloatField(required=False, allow_null=True)
    type = serializers.CharField(required=False, default='training')
    date = serializers.DateField(required=False, allow_null=True)


class SessionSummarySerializer(serializers.Serializer):
    parent_id = serializers.IntegerField()
    total = serializers.IntegerField()
    completed = serializers.IntegerField()
    counts = serializers.SerializerMethodField()
    next_date = serializers.DateField(allow_null=True)
    last_finished_date = serializers.DateField(allow_null=True)

    def get_counts(self, summary):
        return {status.value: count for status, count in summary.counts.items()}
