from unittest import mock

from django.test import SimpleTestCase

from training.cache import MISS, ExpiringCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class ExpiringCacheTests(SimpleTestCase):
    """Test the expiring cache with a controllable clock."""

    def setUp(self):
        self.clock = FakeClock()
        self.cache = ExpiringCache(maxsize=10, max_age=30, clock=self.clock)

    def test_miss_then_hit(self):
        self.assertIs(self.cache.lookup('k'), MISS)

        self.cache.store('k', {'pace': 80})
        lookup = self.cache.lookup('k')

        self.assertTrue(lookup.hit)
        self.assertEqual(lookup.value, {'pace': 80})

    def test_cached_none_is_a_hit(self):
        self.cache.store('k', None)
        self.assertTrue(self.cache.lookup('k').hit)

    def test_entry_expires(self):
        self.cache.store('k', 1)

        self.clock.now = 29
        self.assertTrue(self.cache.lookup('k').hit)

        self.clock.now = 31
        self.assertFalse(self.cache.lookup('k').hit)

    def test_invalidate_and_clear(self):
        self.cache.store('a', 1)
        self.cache.store('b', 2)

        self.cache.invalidate('a')
        self.cache.invalidate('missing')
        self.assertFalse(self.cache.lookup('a').hit)
        self.assertEqual(len(self.cache), 1)

        self.cache.clear()
        self.assertEqual(len(self.cache), 0)

    def test_get_or_load_calls_loader_once(self):
        loader = mock.Mock(return_value=42)

        self.assertEqual(self.cache.get_or_load('k', loader), 42)
        self.assertEqual(self.cache.get_or_load('k', loader), 42)
        loader.assert_called_once_with()

    def test_get_or_load_reloads_after_expiry(self):
        loader = mock.Mock(side_effect=[1, 2])

        self.cache.get_or_load('k', loader)
        self.clock.now = 60

        self.assertEqual(self.cache.get_or_load('k', loader), 2)

    def test_maxsize_bounds_entries(self):
        cache = ExpiringCache(maxsize=2, max_age=30, clock=self.clock)
        for key in 'abc':
            cache.store(key, key)
        self.assertEqual(len(cache), 2)
