"""
Notifications delivered by the ConnectionManager to its listeners.

Lifecycle notifications report the state of the connection itself;
completion notifications report the outcome of a single Request. Every
listener receives every notification, in the order the underlying events
occurred.
"""

from dataclasses import dataclass, field
from typing import Optional

from py2mpd.core.errors import MPDError
from py2mpd.models.request import Request


class Notification:
    """Base class of every notification."""

    name = "notification"


@dataclass(frozen=True)
class Connected(Notification):
    """The server greeting was verified; requests are now written."""

    version: str
    name = "connected"


@dataclass(frozen=True)
class ConnectErrorRetriable(Notification):
    """A connection attempt failed and another one is scheduled."""

    reason: str
    error: Optional[MPDError] = field(default=None, compare=False)
    name = "connect_error_retriable"


@dataclass(frozen=True)
class ConnectErrorFatal(Notification):
    """Connecting gave up: retries exhausted or the peer is not the expected server."""

    reason: str
    error: Optional[MPDError] = field(default=None, compare=False)
    name = "connect_error_fatal"


@dataclass(frozen=True)
class Disconnected(Notification):
    """An established connection was closed."""

    name = "disconnected"


@dataclass(frozen=True)
class DataReady(Notification):
    """A request completed successfully; its data is in request.result."""

    request: Request
    name = "data_ready"


@dataclass(frozen=True)
class ErrorReported(Notification):
    """A request completed with an error."""

    request: Request
    message: str
    name = "error_reported"
