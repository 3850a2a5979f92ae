from unittest import mock

from django.apps import apps
from rest_framework import status
from rest_framework.test import APITestCase

from training.exceptions import StoreUnavailable
from training.store import DocumentStore
from training.types import PLAYERS_COLLECTION, SESSIONS_COLLECTION, Status, session_to_record

from .factories import ACADEMY, regular


class SessionAPITestCase(APITestCase):

    def setUp(self):
        self.sessions = DocumentStore(SESSIONS_COLLECTION, ACADEMY)
        self.recurring = {
            'name': 'Weekly conditioning',
            'date': '2024-01-01',
            'start_time': '09:00',
            'end_time': '10:00',
            'assigned_players': ['p1'],
            'coach_ids': ['c1'],
            'is_recurring': True,
            'recurring_end_date': '2024-01-14',
            'selected_days': ['Monday', 'Wednesday'],
        }

    def url(self, path):
        return f'/api/{path}?academy_id={ACADEMY}'

    def create_recurring(self):
        response = self.client.post(self.url('sessions/'), self.recurring, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data['session']


class SessionListCreateAPITests(SessionAPITestCase):
    """Test listing and creating sessions."""

    def test_create_recurring_session(self):
        """Creating a recurring session reports the occurrences it stored."""
        response = self.client.post(self.url('sessions/'), self.recurring, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['occurrences_created'], 4)
        session = response.data['session']
        self.assertEqual(session['kind'], 'template')
        self.assertEqual(session['selected_days'], ['monday', 'wednesday'])
        self.assertEqual(session['start_time'], '09:00')
        self.assertEqual(session['total_occurrences'], 4)

    def test_create_regular_session(self):
        data = {'name': 'Match prep', 'date': '2024-02-01', 'start_time': '18:00', 'end_time': '19:30'}

        response = self.client.post(self.url('sessions/'), data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['session']['kind'], 'regular')
        self.assertEqual(response.data['session']['status'], 'Finished')
        self.assertEqual(response.data['occurrences_created'], 0)

    def test_create_validation_errors(self):
        """Invalid times and recurrence settings are rejected."""
        cases = [
            {'start_time': '9am'},
            {'selected_days': ['Funday']},
            {'selected_days': []},
            {'recurring_end_date': '2023-12-01'},
            {'recurring_end_date': '2024-01-02', 'selected_days': ['friday']},
        ]
        for overrides in cases:
            response = self.client.post(
                self.url('sessions/'), {**self.recurring, **overrides}, format='json'
            )
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, overrides)
        self.assertEqual(self.sessions.find(), [])

    def test_academy_is_required(self):
        response = self.client.get('/api/sessions/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('academy_id', response.data)

    def test_academy_from_header(self):
        self.sessions.insert_one(session_to_record(regular()))

        response = self.client.get('/api/sessions/', HTTP_X_ACADEMY_ID=ACADEMY)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['sessions']), 1)

    def test_list_sessions(self):
        self.create_recurring()

        response = self.client.get(self.url('sessions/'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        kinds = [s['kind'] for s in response.data['sessions']]
        self.assertEqual(kinds, ['template'] + ['occurrence'] * 4)
        self.assertIn('poll_interval', response.data)
        self.assertIn('poll_debounce', response.data)

    def test_list_filtered_by_status(self):
        self.create_recurring()

        response = self.client.get(self.url('sessions/') + '&status=Finished')

        self.assertEqual(len(response.data['sessions']), 4)
        self.assertTrue(all(s['status'] == 'Finished' for s in response.data['sessions']))

        response = self.client.get(self.url('sessions/') + '&status=Upcoming')
        self.assertEqual(response.data['sessions'], [])

    def test_invalid_status_filter(self):
        response = self.client.get(self.url('sessions/') + '&status=Cancelled')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_store_unavailable(self):
        with mock.patch('training.services.list_sessions', side_effect=StoreUnavailable()):
            response = self.client.get(self.url('sessions/'))
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)


class SessionDetailAPITests(SessionAPITestCase):
    """Test retrieving, updating and deleting one session."""

    def test_get_session(self):
        self.sessions.insert_one(session_to_record(regular(status=Status.UPCOMING)))

        response = self.client.get(self.url('sessions/1/'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Finishing drills')
        self.assertEqual(response.data['status'], 'Finished')

    def test_get_missing_session(self):
        response = self.client.get(self.url('sessions/404/'))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['detail'], 'Session 404 not found')

    def test_get_malformed_session(self):
        self.sessions.insert_one({'id': 5, 'name': 'Broken', 'date': 'someday'})

        response = self.client.get(self.url('sessions/5/'))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_patch_session(self):
        self.sessions.insert_one(session_to_record(regular()))

        response = self.client.patch(
            self.url('sessions/1/'), {'name': 'Renamed', 'end_time': '10:30'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Renamed')
        self.assertEqual(response.data['end_time'], '10:30')

    def test_delete_with_cascade(self):
        session = self.create_recurring()

        response = self.client.delete(self.url(f"sessions/{session['id']}/") + '&occurrences=cascade')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['policy'], 'cascade')
        self.assertEqual(response.data['occurrences_deleted'], 4)
        self.assertEqual(self.sessions.find(), [])

    def test_delete_keeps_occurrences_by_default(self):
        session = self.create_recurring()

        response = self.client.delete(self.url(f"sessions/{session['id']}/"))

        self.assertEqual(response.data['policy'], 'keep')
        self.assertEqual(len(self.sessions.find()), 4)

    def test_delete_with_unknown_policy(self):
        session = self.create_recurring()
        response = self.client.delete(self.url(f"sessions/{session['id']}/") + '&occurrences=all')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class OccurrenceAndSummaryAPITests(SessionAPITestCase):

    def test_occurrences(self):
        session = self.create_recurring()

        response = self.client.get(self.url(f"sessions/{session['id']}/occurrences/"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [o['date'] for o in response.data],
            ['2024-01-01', '2024-01-03', '2024-01-08', '2024-01-10'],
        )
        self.assertTrue(all(o['parent_session_id'] == session['id'] for o in response.data))

    def test_occurrences_of_unknown_session(self):
        response = self.client.get(self.url('sessions/404/occurrences/'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_summary(self):
        session = self.create_recurring()

        response = self.client.get(self.url(f"sessions/{session['id']}/summary/"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 4)
        self.assertEqual(response.data['completed'], 4)
        self.assertEqual(response.data['counts'], {'Upcoming': 0, 'On-going': 0, 'Finished': 4})
        self.assertIsNone(response.data['next_date'])
        self.assertEqual(response.data['last_finished_date'], '2024-01-10')


class AttendanceAndMetricsAPITests(SessionAPITestCase):
    """Test attendance marking and player metrics."""

    def setUp(self):
        super().setUp()
        self.players = DocumentStore(PLAYERS_COLLECTION, ACADEMY)
        self.players.insert_one({'id': 'p1', 'name': 'Ada', 'attributes': {'pace': 70}})
        self.sessions.insert_one(session_to_record(regular(assigned_players=['p1'])))
        apps.get_app_config('training').metrics_cache.clear()

    def test_session_players(self):
        response = self.client.get(self.url('sessions/1/players/'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['name'], 'Ada')
        self.assertEqual(response.data[0]['position'], 'Unassigned')

    def test_mark_attendance(self):
        response = self.client.post(
            self.url('sessions/1/attendance/'),
            {'marks': {'p1': True}, 'marked_by': 'c1'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['attendance']['p1']['status'], 'Present')
        self.assertEqual(response.data['attendance']['p1']['marked_by'], 'c1')

    def test_mark_attendance_requires_marks(self):
        response = self.client.post(
            self.url('sessions/1/attendance/'), {'marks': {}, 'marked_by': 'c1'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_get_metrics(self):
        response = self.client.get(self.url('players/p1/metrics/') + '&session_id=1')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'pace': 70})

    def test_patch_metrics(self):
        self.client.get(self.url('players/p1/metrics/') + '&session_id=1')

        response = self.client.patch(
            self.url('players/p1/metrics/'),
            {'session_id': 1, 'attributes': {'pace': 85}, 'session_rating': 7},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['attributes'], {'pace': 85})
        self.assertEqual(len(response.data['performanceHistory']), 1)

        response = self.client.get(self.url('players/p1/metrics/') + '&session_id=1')
        self.assertEqual(response.data, {'pace': 85, 'sessionRating': 7.0})

    def test_metrics_for_unknown_player(self):
        response = self.client.patch(
            self.url('players/p9/metrics/'),
            {'session_id': 1, 'attributes': {'pace': 85}},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
