# src/py2mpd/core/events.py
"""
Event manager for connection synchronization.

Named threading events let synchronous callers block on connection
milestones without polling the ConnectionManager.
"""
from threading import Event
from typing import Dict, Optional
import logging

class EventManager:
    """
    Manages threading events for synchronization.

    Standard events:
        ready: The handshake succeeded and requests are written to the wire
        idle: No request is in flight
        terminated: The connection gave up (fatal error or shutdown)

    Attributes:
        _events: Dictionary of managed events
        logger: Logger instance
    """

    def __init__(self):
        """Initialize the event manager with standard events."""
        self.logger = logging.getLogger(__name__)

        self._events: Dict[str, Event] = {
            'ready': Event(),
            'idle': Event(),
            'terminated': Event(),
        }

        # Nothing is in flight initially
        self._events['idle'].set()

        self.logger.debug(f"Initialized {len(self._events)} events")

    def get_event(self, name: str) -> Event:
        """
        Get an event by name.

        Raises:
            KeyError: If event name doesn't exist
        """
        if name not in self._events:
            raise KeyError(f"Event '{name}' not found. Available events: {list(self._events.keys())}")
        return self._events[name]

    def set_event(self, name: str) -> None:
        """Set an event."""
        self.get_event(name).set()
        self.logger.debug(f"Event '{name}' set")

    def clear_event(self, name: str) -> None:
        """Clear an event."""
        self.get_event(name).clear()
        self.logger.debug(f"Event '{name}' cleared")

    def is_set(self, name: str) -> bool:
        """
        Check if an event is set.

        Returns:
            bool: True if event is set, False otherwise (or if unknown)
        """
        try:
            return self.get_event(name).is_set()
        except KeyError:
            self.logger.error(f"Event '{name}' not found")
            return False

    def wait_for_event(self, name: str, timeout: Optional[float] = None) -> bool:
        """
        Wait for an event to be set.

        Args:
            name: Name of the event to wait for
            timeout: Maximum time to wait in seconds (None = wait forever)

        Returns:
            bool: True if event was set, False if timeout
        """
        try:
            event = self.get_event(name)
        except KeyError as e:
            self.logger.error(f"Cannot wait for event: {e}")
            return False

        result = event.wait(timeout)
        if not result and timeout is not None:
            self.logger.debug(f"Timeout waiting for event '{name}' after {timeout}s")
        return result

    def get_event_states(self) -> Dict[str, bool]:
        """Get current state of all events."""
        return {name: event.is_set() for name, event in self._events.items()}
