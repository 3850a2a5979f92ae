"""Views for the training session API."""

from django.apps import apps
from django.conf import settings

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .serializers import (
    AttendanceSerializer,
    MetricsQuerySerializer,
    MetricsUpdateSerializer,
    SessionCreateSerializer,
    SessionDeleteQuerySerializer,
    SessionSummarySerializer,
    SessionUpdateSerializer,
    StatusQuerySerializer,
    serialize_session,
    serialize_sessions,
)
from .types import SessionChanges, SessionKind


def academy_id_from(request):
    """Tenant of the request, from the query string or X-Academy-Id header."""
    academy_id = request.query_params.get('academy_id') or request.headers.get('X-Academy-Id')
    if not academy_id:
        raise ValidationError({'academy_id': 'This parameter is required.'})
    return academy_id


def metrics_cache():
    return apps.get_app_config('training').metrics_cache


class SessionListCreateView(APIView):
    """
    List all sessions of an academy or create a new one.

    GET /api/sessions/?academy_id=X[&status=Upcoming] - List sessions
    POST /api/sessions/?academy_id=X - Create a regular or recurring session
    """

    def get(self, request):
        """List sessions with current statuses."""
        academy_id = academy_id_from(request)
        query_serializer = StatusQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        status_filter = query_serializer.validated_data.get('status')

        sessions = services.list_sessions(academy_id)
        if status_filter is not None:
            sessions = [
                s for s in sessions
                if s.kind is not SessionKind.TEMPLATE and s.status is status_filter
            ]

        return Response({
            'sessions': serialize_sessions(sessions),
            'poll_interval': settings.POLL_INTERVAL_SECONDS,
            'poll_debounce': settings.POLL_DEBOUNCE_SECONDS,
        })

    def post(self, request):
        """Create a session, materializing occurrences for recurring ones."""
        academy_id = academy_id_from(request)
        serializer = SessionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        session, occurrences_count = services.create_session(academy_id, serializer.validated_data)

        return Response({
            'session': serialize_session(session),
            'occurrences_created': occurrences_count,
        }, status=status.HTTP_201_CREATED)


class SessionDetailView(APIView):
    """
    Retrieve, update, or delete a session.

    GET /api/sessions/{id}/ - Retrieve session
    PATCH /api/sessions/{id}/ - Update session
    DELETE /api/sessions/{id}/?occurrences=keep|cascade|future - Delete session
    """

    def get(self, request, pk):
        """Retrieve a session."""
        session = services.get_session(academy_id_from(request), pk)
        return Response(serialize_session(session))

    def patch(self, request, pk):
        """Update a session."""
        academy_id = academy_id_from(request)
        serializer = SessionUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        changes = SessionChanges(
            name=data.get('name'),
            start_time=data.get('start_time'),
            end_time=data.get('end_time'),
            coach_ids=data.get('coach_ids'),
            assigned_players=data.get('assigned_players'),
            assigned_batch=data.get('assigned_batch'),
        )
        session = services.update_session(
            academy_id,
            pk,
            changes,
            update_future_occurrences=data.get('update_future_occurrences', True),
        )
        return Response(serialize_session(session))

    def delete(self, request, pk):
        """Delete a session."""
        academy_id = academy_id_from(request)
        query_serializer = SessionDeleteQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        result = services.delete_session(
            academy_id, pk, policy=query_serializer.validated_data.get('occurrences')
        )
        return Response({
            'message': f'Session {result.session_id} has been deleted.',
            'policy': result.policy,
            'occurrences_deleted': result.occurrences_deleted,
        }, status=status.HTTP_200_OK)


class SessionOccurrencesView(APIView):
    """
    List the occurrences of a recurring session.

    GET /api/sessions/{id}/occurrences/?status=Finished
    """

    def get(self, request, pk):
        academy_id = academy_id_from(request)
        query_serializer = StatusQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        occurrences = services.session_occurrences(
            academy_id, pk, status=query_serializer.validated_data.get('status')
        )
        return Response(serialize_sessions(occurrences))


class SessionSummaryView(APIView):
    """
    Completed / total counts and next / last dates of a session.

    GET /api/sessions/{id}/summary/
    """

    def get(self, request, pk):
        summary = services.session_summary(academy_id_from(request), pk)
        return Response(SessionSummarySerializer(summary).data)


class SessionPlayersView(APIView):
    """
    Players assigned to a session.

    GET /api/sessions/{id}/players/
    """

    def get(self, request, pk):
        academy_id = academy_id_from(request)
        session = services.get_session(academy_id, pk)
        return Response(services.session_players(academy_id, session))


class AttendanceView(APIView):
    """
    Mark players Present or Absent for a session.

    POST /api/sessions/{id}/attendance/
    """

    def post(self, request, pk):
        academy_id = academy_id_from(request)
        serializer = AttendanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        session = services.mark_attendance(
            academy_id,
            pk,
            marks=serializer.validated_data['marks'],
            marked_by=serializer.validated_data['marked_by'],
        )
        return Response(serialize_session(session))


class PlayerMetricsView(APIView):
    """
    Read or record a player's metrics for a session.

    GET /api/players/{id}/metrics/?session_id=X
    PATCH /api/players/{id}/metrics/
    """

    def get(self, request, pk):
        academy_id = academy_id_from(request)
        query_serializer = MetricsQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        metrics = services.get_player_metrics(
            academy_id,
            pk,
            query_serializer.validated_data['session_id'],
            cache=metrics_cache(),
        )
        return Response(metrics)

    def patch(self, request, pk):
        academy_id = academy_id_from(request)
        serializer = MetricsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        player = services.update_session_metrics(
            academy_id,
            pk,
            data['session_id'],
            data['attributes'],
            session_rating=data.get('session_rating'),
            overall=data.get('overall'),
            metric_type=data['type'],
            on_date=data.get('date'),
            cache=metrics_cache(),
        )
        return Response(player)
