# tests/test_events.py
"""
Unit tests for the event manager.

These tests verify the synchronization events the connection manager
exposes to synchronous callers.
"""
import unittest
import threading
import time

from py2mpd.core.events import EventManager


class TestEventManager(unittest.TestCase):
    """Test the EventManager class."""

    def setUp(self):
        """Set up test fixtures."""
        self.em = EventManager()

    def test_event_creation(self):
        """Test that all expected events are created."""
        for event_name in ['ready', 'idle', 'terminated']:
            self.assertIsNotNone(self.em.get_event(event_name))

    def test_initial_state(self):
        """Test initial event states."""
        # Nothing is in flight before the first request
        self.assertEqual(self.em.get_event_states(),
                         {'ready': False, 'idle': True, 'terminated': False})

    def test_set_and_clear(self):
        """Test setting and clearing events."""
        self.em.set_event('ready')
        self.assertTrue(self.em.is_set('ready'))

        self.em.clear_event('ready')
        self.assertFalse(self.em.is_set('ready'))

    def test_event_not_found(self):
        """Test handling of non-existent event."""
        with self.assertRaises(KeyError):
            self.em.get_event('non_existent_event')

        self.assertFalse(self.em.is_set('non_existent_event'))
        self.assertFalse(self.em.wait_for_event('non_existent_event', timeout=0.01))

    def test_wait_for_event(self):
        """Test waiting for an event."""
        self.em.set_event('terminated')
        self.assertTrue(self.em.wait_for_event('terminated', timeout=1.0))

        self.em.clear_event('terminated')
        start_time = time.time()
        result = self.em.wait_for_event('terminated', timeout=0.1)
        elapsed = time.time() - start_time

        self.assertFalse(result)
        self.assertGreater(elapsed, 0.09)

    def test_thread_synchronization(self):
        """Test that a waiting thread is released by set_event."""
        results = []

        def waiter():
            results.append(self.em.wait_for_event('ready', timeout=2.0))

        thread = threading.Thread(target=waiter)
        thread.start()
        time.sleep(0.05)
        self.em.set_event('ready')
        thread.join(timeout=2.0)

        self.assertEqual(results, [True])


if __name__ == '__main__':
    unittest.main()
