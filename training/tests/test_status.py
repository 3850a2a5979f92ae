from datetime import date, datetime, time, timedelta

from django.test import SimpleTestCase

from training.status import annotate, classify, has_ended, session_bounds
from training.types import Status

from .factories import aware, occurrence, regular, template


class ClassifyTests(SimpleTestCase):
    """Test status classification against the clock."""

    def setUp(self):
        self.session = occurrence(date=date(2024, 3, 4), start_time=time(9, 0), end_time=time(10, 0))

    def test_before_during_after(self):
        self.assertEqual(classify(self.session, aware(2024, 3, 4, 8, 0)), Status.UPCOMING)
        self.assertEqual(classify(self.session, aware(2024, 3, 4, 9, 30)), Status.ONGOING)
        self.assertEqual(classify(self.session, aware(2024, 3, 4, 11, 0)), Status.FINISHED)

    def test_start_boundary_is_ongoing(self):
        self.assertEqual(classify(self.session, aware(2024, 3, 4, 9, 0)), Status.ONGOING)

    def test_end_boundary_is_ongoing(self):
        self.assertEqual(classify(self.session, aware(2024, 3, 4, 10, 0)), Status.ONGOING)

    def test_one_second_after_end_is_finished(self):
        now = aware(2024, 3, 4, 10, 0) + timedelta(seconds=1)
        self.assertEqual(classify(self.session, now), Status.FINISHED)

    def test_other_days(self):
        self.assertEqual(classify(self.session, aware(2024, 3, 3, 23, 0)), Status.UPCOMING)
        self.assertEqual(classify(self.session, aware(2024, 3, 5, 0, 0)), Status.FINISHED)

    def test_idempotent(self):
        now = aware(2024, 3, 4, 9, 30)
        self.assertEqual(classify(self.session, now), classify(self.session, now))

    def test_naive_now_is_local(self):
        self.assertEqual(classify(self.session, datetime(2024, 3, 4, 9, 30)), Status.ONGOING)

    def test_end_before_start_finishes_at_end(self):
        """Overnight sessions are not supported; the end lands on the same day."""
        late = regular(date=date(2024, 3, 4), start_time=time(22, 0), end_time=time(1, 0))
        self.assertEqual(classify(late, aware(2024, 3, 4, 0, 30)), Status.UPCOMING)
        self.assertEqual(classify(late, aware(2024, 3, 4, 1, 0)), Status.UPCOMING)
        self.assertEqual(classify(late, aware(2024, 3, 4, 12, 0)), Status.FINISHED)
        self.assertEqual(classify(late, aware(2024, 3, 4, 22, 30)), Status.FINISHED)

    def test_classify_agrees_with_has_ended(self):
        late = occurrence(date=date(2024, 3, 4), start_time=time(22, 0), end_time=time(1, 0))
        for hour in (0, 2, 12, 21, 23):
            now = aware(2024, 3, 4, hour, 0)
            self.assertEqual(
                classify(late, now) is Status.FINISHED, has_ended(late, now), hour
            )

    def test_bounds(self):
        start, end = session_bounds(self.session)
        self.assertEqual(start, aware(2024, 3, 4, 9, 0))
        self.assertEqual(end, aware(2024, 3, 4, 10, 0))

    def test_has_ended_is_strict(self):
        self.assertFalse(has_ended(self.session, aware(2024, 3, 4, 10, 0)))
        self.assertTrue(has_ended(self.session, aware(2024, 3, 4, 10, 1)))


class AnnotateTests(SimpleTestCase):

    def test_annotates_dated_sessions_only(self):
        parent = template()
        sessions = [parent, regular(date=date(2024, 1, 1)), occurrence(date=date(2024, 1, 8))]

        annotated = annotate(sessions, aware(2024, 1, 3, 12, 0))

        self.assertIs(annotated[0], parent)
        self.assertEqual(annotated[1].status, Status.FINISHED)
        self.assertEqual(annotated[2].status, Status.UPCOMING)
        self.assertIsNone(sessions[1].status)
