"""
Connection models for py2mpd.

This module provides data structures and models for the TCP connection to
an MPD server.

Classes:
    ConnectionConfig: Immutable configuration for a connection
    ConnectionPhase: Enumeration of connection phases
    ConnectionStatus: Snapshot of the current connection status
    ConnectionModel: Observable model for connection status management
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


DEFAULT_PORT = 6600
DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_WAIT = 2.0


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Immutable configuration for a server connection.

    Attributes:
        host: Hostname or IP address of the server
        port: TCP port of the server (1-65535)
        max_retries: Connection attempts allowed before giving up
        retry_wait: Seconds to wait before a reconnection attempt
        connect_timeout: Socket connect timeout in seconds
        protocol_name: Name expected in the "OK <name> <version>" greeting
        encoding: Text encoding of the line protocol

    Example:
        >>> config = ConnectionConfig("localhost", 6600, max_retries=3)
        >>> valid, errors = config.validate()
        >>> if not valid:
        ...     print(f"Validation errors: {errors}")
    """

    host: str = "localhost"
    port: int = DEFAULT_PORT
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_wait: float = DEFAULT_RETRY_WAIT
    connect_timeout: float = 2.0
    protocol_name: str = "MPD"
    encoding: str = "utf-8"

    def validate(self) -> Tuple[bool, List[str]]:
        """
        Validate the connection configuration.

        Returns:
            Tuple of (is_valid, list_of_error_messages)

        Validation rules:
            - Host must be a non-empty string
            - Port must be an integer in range 1-65535
            - max_retries must be an integer >= 0
            - retry_wait must be >= 0
            - connect_timeout must be positive
            - protocol_name must be a non-empty word
        """
        errors = []

        if not isinstance(self.host, str) or not self.host.strip():
            errors.append(f"Invalid host: {self.host!r}")

        if not isinstance(self.port, int) or isinstance(self.port, bool):
            errors.append(f"Port must be an integer, got {type(self.port).__name__}")
        elif not (1 <= self.port <= 65535):
            errors.append(f"Port out of range (1-65535): {self.port}")

        if not isinstance(self.max_retries, int) or isinstance(self.max_retries, bool):
            errors.append(f"max_retries must be an integer, got {type(self.max_retries).__name__}")
        elif self.max_retries < 0:
            errors.append(f"max_retries must be >= 0: {self.max_retries}")

        if not isinstance(self.retry_wait, (int, float)) or self.retry_wait < 0:
            errors.append(f"retry_wait must be >= 0: {self.retry_wait}")

        if not isinstance(self.connect_timeout, (int, float)) or self.connect_timeout <= 0:
            errors.append(f"connect_timeout must be positive: {self.connect_timeout}")

        if not isinstance(self.protocol_name, str) or not self.protocol_name \
                or any(c.isspace() for c in self.protocol_name):
            errors.append(f"Invalid protocol name: {self.protocol_name!r}")

        return (len(errors) == 0, errors)

    def with_overrides(self, **overrides) -> "ConnectionConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


class ConnectionPhase(Enum):
    """
    Phases of the connection lifecycle.

    Phases:
        DISCONNECTED: No socket
        CONNECTING: Socket connect in progress
        HANDSHAKE_PENDING: Socket open, waiting for the server greeting
        READY: Greeting verified, requests are written to the wire
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HANDSHAKE_PENDING = "handshake_pending"
    READY = "ready"


@dataclass(frozen=True)
class ConnectionStatus:
    """
    Snapshot of a connection's status.

    Attributes:
        phase: Current connection phase
        host: Server host of the current or last attempt
        port: Server port of the current or last attempt
        server_version: Version advertised in the greeting, once READY
        connected_at: When the greeting was verified
        retries_left: Connection attempts left before giving up
        auto_reconnect: Whether drops trigger a reconnection
        last_error: Last connection error text
    """

    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    host: Optional[str] = None
    port: Optional[int] = None
    server_version: Optional[str] = None
    connected_at: Optional[datetime] = None
    retries_left: int = 0
    auto_reconnect: bool = True
    last_error: Optional[str] = None


class ConnectionModel:
    """
    Observable model for connection status management.

    Observers are called with the new ConnectionStatus every time
    update() changes it. An observer that raises is logged and skipped.

    Example:
        >>> model = ConnectionModel()
        >>> model.add_observer(lambda status: print(status.phase.value))
        >>> model.update(phase=ConnectionPhase.CONNECTING)
        connecting
    """

    def __init__(self):
        """Initialize the connection model with disconnected status."""
        self._status = ConnectionStatus()
        self._observers: List[Callable[[ConnectionStatus], None]] = []
        self._lock = threading.Lock()

    @property
    def status(self) -> ConnectionStatus:
        """Get the current connection status."""
        with self._lock:
            return self._status

    def update(self, **changes) -> ConnectionStatus:
        """
        Apply changes to the status and notify all observers.

        Args:
            **changes: ConnectionStatus fields to replace

        Returns:
            The new ConnectionStatus
        """
        with self._lock:
            self._status = replace(self._status, **changes)
            status = self._status
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(status)
            except Exception as e:
                logger.exception(f"Observer error on phase {status.phase.value}: {e}")
        return status

    def add_observer(self, callback: Callable[[ConnectionStatus], None]) -> None:
        """Register a callback to be notified of status changes."""
        with self._lock:
            if callback not in self._observers:
                self._observers.append(callback)

    def remove_observer(self, callback: Callable[[ConnectionStatus], None]) -> None:
        """Unregister a callback. Unknown callbacks are ignored."""
        with self._lock:
            if callback in self._observers:
                self._observers.remove(callback)
