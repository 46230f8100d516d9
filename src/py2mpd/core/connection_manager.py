"""
Resilient, pipelined connection to an MPD server.

ConnectionManager owns the transport socket, runs the reconnect policy,
correlates responses with pipelined requests and reports lifecycle events
and request completions to its listeners.

Architecture:
    Owner threads ──connect()/submit()/shutdown()──┐
    SocketReader thread ──lines / socket closed────┤
    Connector thread ──socket open / failed────────┼──> mailbox (queue.Queue)
    Reconnect timer ──reconnect────────────────────┘          │
                                                              ▼
                                                  dispatcher thread
                                                  (phase transitions,
                                                   RequestQueue,
                                                   ResponseClassifier,
                                                   listener callbacks)

Everything that touches the connection state runs on the dispatcher thread,
one mailbox item at a time, so a submit() never interleaves with the
classification of an inbound line. Items coming from a socket carry that
socket's generation; items from an older generation are dropped.

Phases:
    DISCONNECTED --connect--> CONNECTING --socket open--> HANDSHAKE_PENDING
    HANDSHAKE_PENDING --"OK MPD <version>"--> READY
    READY --socket closed--> DISCONNECTED (reconnect if auto_reconnect)
"""

import logging
import queue
import socket
import threading
from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Optional

from py2mpd.core.errors import (
    ErrorCodes,
    MPDConnectionError,
    MPDError,
    ProtocolError,
    StateError,
    ValidationError,
    wrap_external_error,
)
from py2mpd.core.events import EventManager
from py2mpd.core.response_classifier import RequestQueue, ResponseClassifier
from py2mpd.core.socket_reader import SocketReader
from py2mpd.core.tcp_connection import TCPConnection
from py2mpd.core.tcp_protocol import ProtocolDecoder, ProtocolEncoder
from py2mpd.models.connection import (
    ConnectionConfig,
    ConnectionModel,
    ConnectionPhase,
    ConnectionStatus,
)
from py2mpd.models.notifications import (
    Connected,
    ConnectErrorFatal,
    ConnectErrorRetriable,
    DataReady,
    Disconnected,
    ErrorReported,
    Notification,
)
from py2mpd.models.request import Request

logger = logging.getLogger(__name__)

Listener = Callable[[Notification], None]

CONNECTION_RESET = "connection reset"
CONNECTION_SHUT_DOWN = "connection shut down"
CONNECTION_FAILED = "connection failed"
INVALID_COMMAND = "invalid command"


def describe_error(error: Optional[BaseException]) -> str:
    """Render a transport exception as a short reason string."""
    if error is None:
        return "connection closed"
    if isinstance(error, OSError) and error.errno is not None:
        return f"connect: ({error.errno}) {error.strerror}"
    return str(error) or type(error).__name__


def connection_error_code(error: Optional[BaseException]) -> int:
    """Pick the ErrorCodes value for a failed connection attempt."""
    if error is None:
        return ErrorCodes.CONNECTION_LOST
    if isinstance(error, ConnectionRefusedError):
        return ErrorCodes.CONNECTION_REFUSED
    if isinstance(error, (socket.timeout, TimeoutError)):
        return ErrorCodes.CONNECTION_TIMEOUT
    if isinstance(error, OSError):
        return ErrorCodes.SOCKET_ERROR
    # Undecodable or oversized lines from the peer
    return ErrorCodes.PROTOCOL_ERROR


class ConnectionManager:
    """
    Pipelined client connection with automatic reconnection.

    Example:
        >>> manager = ConnectionManager(ConnectionConfig("localhost", 6600))
        >>> manager.add_listener(print)
        >>> manager.connect()
        >>> request = manager.submit(Request(["status"], OutputShape.KEY_VALUE_PAIRS))
        >>> request.wait(timeout=5.0)
        >>> manager.shutdown()
    """

    def __init__(self, config: Optional[ConnectionConfig] = None,
                 event_manager: Optional[EventManager] = None):
        """
        Initialize the manager and start its dispatcher thread.

        Args:
            config: Default connection settings; connect() may override them
            event_manager: Event manager for ready/idle/terminated events
        """
        self.config = config or ConnectionConfig()
        self.events = event_manager or EventManager()
        self.model = ConnectionModel()

        self._mailbox: "queue.Queue[tuple]" = queue.Queue()
        self._listeners: List[Listener] = []
        self._listeners_lock = threading.Lock()

        # Dispatcher-thread state
        self._phase = ConnectionPhase.DISCONNECTED
        self._auto_reconnect = True
        # Error text for requests submitted after connecting gave up
        self._gave_up_error: Optional[str] = None
        self._retries_left = self.config.max_retries
        self._generation = 0
        self._connection: Optional[TCPConnection] = None
        self._reader: Optional[SocketReader] = None
        self._timer: Optional[threading.Timer] = None
        self._encoder = ProtocolEncoder(self.config.encoding)
        self._decoder = ProtocolDecoder(self.config.protocol_name, self.config.encoding)
        self._queue = RequestQueue()
        self._classifier = ResponseClassifier(self._queue)
        self._outbox: Deque[Request] = deque()

        # Owner-visible lifecycle flags
        self._state_lock = threading.Lock()
        self._shutdown_requested = False
        self._stopped = False

        self._handlers = {
            'connect': self._on_connect,
            'reconnect': self._on_reconnect,
            'socket_open': self._on_socket_open,
            'connect_failed': self._on_connect_failed,
            'line': self._on_line,
            'closed': self._on_closed,
            'submit': self._on_submit,
            'shutdown': self._on_shutdown,
        }

        self._thread = threading.Thread(
            target=self._run,
            name="ConnectionManager",
            daemon=True
        )
        self._thread.start()

    # ========== Owner API ==========

    def add_listener(self, callback: Listener) -> None:
        """Register a callback receiving every Notification."""
        with self._listeners_lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        """Unregister a callback. Unknown callbacks are ignored."""
        with self._listeners_lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def connect(self, host: Optional[str] = None, port: Optional[int] = None,
                max_retries: Optional[int] = None,
                retry_wait: Optional[float] = None) -> None:
        """
        Start connecting to the server.

        Outcomes are reported asynchronously through listeners. Arguments
        left as None fall back to the manager's config.

        Raises:
            ValidationError: If the resulting settings are invalid
            StateError: If the manager was shut down
        """
        config = self.config.with_overrides(
            host=host, port=port, max_retries=max_retries, retry_wait=retry_wait
        )
        valid, errors = config.validate()
        if not valid:
            raise ValidationError(
                f"Invalid connection settings: {'; '.join(errors)}",
                field_name='config',
                error_code=ErrorCodes.INVALID_PARAMETER
            )
        self._check_not_shut_down()
        self._post('connect', None, config)

    def submit(self, request: Request) -> Request:
        """
        Queue a request for sending.

        The request is written as soon as the connection is READY. Its
        completion is reported with DataReady or ErrorReported.

        Returns:
            The submitted request

        Raises:
            StateError: If the manager was shut down or the request is not pending
        """
        if not isinstance(request, Request):
            raise ValidationError(f"Expected a Request, got {type(request)}",
                                  field_name='request')
        if request.is_complete:
            raise StateError("Cannot submit a completed request",
                             current_state=request.status.value,
                             error_code=ErrorCodes.ALREADY_COMPLETED)
        self._check_not_shut_down()
        self._post('submit', None, request)
        return request

    def shutdown(self, timeout: float = 2.0) -> None:
        """
        Disconnect for good and stop the dispatcher thread.

        Calling shutdown() again is a no-op.
        """
        with self._state_lock:
            if self._shutdown_requested:
                return
            self._shutdown_requested = True

        self._post('shutdown', None, None)
        self._post('stop', None, None)

        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("ConnectionManager dispatcher did not stop cleanly")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the handshake succeeded. Returns False on timeout."""
        return self.events.wait_for_event('ready', timeout)

    @property
    def phase(self) -> ConnectionPhase:
        return self._phase

    @property
    def status(self) -> ConnectionStatus:
        return self.model.status

    @property
    def in_flight(self) -> int:
        """Number of requests written and awaiting their response."""
        return len(self._queue)

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown_requested

    # ========== Dispatcher thread ==========

    def _post(self, kind: str, generation: Optional[int], payload=None) -> None:
        self._mailbox.put((kind, generation, payload))

    def _run(self) -> None:
        logger.debug("ConnectionManager dispatcher starting")
        while True:
            kind, generation, payload = self._mailbox.get()
            if kind == 'stop':
                break
            try:
                self._handlers[kind](generation, payload)
            except Exception as e:
                logger.exception(f"Error handling '{kind}' event: {e}")

        with self._state_lock:
            self._stopped = True
        self._drain_mailbox()
        logger.debug("ConnectionManager dispatcher exiting")

    def _drain_mailbox(self) -> None:
        """Release whatever reached the mailbox after the loop stopped."""
        while True:
            try:
                kind, _generation, payload = self._mailbox.get_nowait()
            except queue.Empty:
                return
            if kind == 'socket_open':
                connection, _sock = payload
                connection.disconnect()
            elif kind == 'submit':
                self._fail(payload, CONNECTION_SHUT_DOWN)

    def _on_connect(self, _generation, config: ConnectionConfig) -> None:
        if self._shutdown_requested:
            return
        if self._phase is not ConnectionPhase.DISCONNECTED:
            logger.warning(f"connect() ignored, connection is {self._phase.value}")
            return

        self.config = config
        self._encoder = ProtocolEncoder(config.encoding)
        self._decoder = ProtocolDecoder(config.protocol_name, config.encoding)
        self._auto_reconnect = True
        self._retries_left = config.max_retries
        self._gave_up_error = None
        self._cancel_timer()
        self.events.clear_event('terminated')
        self._start_attempt()

    def _on_reconnect(self, generation: int, _payload) -> None:
        if generation != self._generation:
            return
        if self._phase is not ConnectionPhase.DISCONNECTED or not self._auto_reconnect:
            return
        self._timer = None
        logger.info(f"Reconnecting to {self.config.host}:{self.config.port}")
        self._start_attempt()

    def _start_attempt(self) -> None:
        self._generation += 1
        generation = self._generation
        config = self.config
        self._set_phase(ConnectionPhase.CONNECTING, host=config.host, port=config.port)

        connector = threading.Thread(
            target=self._attempt,
            args=(generation, config),
            name=f"Connector-{generation}",
            daemon=True
        )
        connector.start()

    def _attempt(self, generation: int, config: ConnectionConfig) -> None:
        """Connector thread: open the socket without blocking the dispatcher."""
        connection = TCPConnection()
        try:
            sock = connection.connect(config.host, config.port, timeout=config.connect_timeout)
        except (OSError, ValueError) as e:
            self._post('connect_failed', generation, e)
            return

        with self._state_lock:
            if self._stopped:
                connection.disconnect()
                return
            self._post('socket_open', generation, (connection, sock))

    def _on_socket_open(self, generation: int, payload) -> None:
        connection, sock = payload
        if generation != self._generation or self._phase is not ConnectionPhase.CONNECTING:
            connection.disconnect()
            return

        self._connection = connection
        self._set_phase(ConnectionPhase.HANDSHAKE_PENDING)
        self._reader = SocketReader(
            sock,
            line_handler=lambda line: self._post('line', generation, line),
            close_handler=lambda error: self._post('closed', generation, error),
            decoder=self._decoder
        )
        self._reader.start()

    def _on_connect_failed(self, generation: int, error: Exception) -> None:
        if generation != self._generation or self._phase is not ConnectionPhase.CONNECTING:
            return
        self._set_phase(ConnectionPhase.DISCONNECTED)
        self._connect_error(describe_error(error), error)

    def _connect_error(self, reason: str, cause: Optional[BaseException]) -> None:
        """Apply the retry policy to a failed connection attempt."""
        if not self._auto_reconnect:
            return

        self._retries_left -= 1
        error = wrap_external_error(
            cause, reason, MPDConnectionError,
            host=self.config.host, port=self.config.port
        ) if cause is not None else MPDConnectionError(
            reason, host=self.config.host, port=self.config.port
        )
        error.error_code = connection_error_code(cause)

        if self._retries_left > 0:
            logger.warning(f"Connection attempt failed ({self._retries_left} left): {reason}")
            self.model.update(retries_left=self._retries_left, last_error=reason)
            self._notify(ConnectErrorRetriable(reason, error))
            self._schedule_reconnect()
            return

        reason = f"Too many failed attempts! error was: {reason}"
        error.error_code = ErrorCodes.RETRIES_EXHAUSTED
        logger.error(reason)
        self._give_up(reason, error, f"{CONNECTION_FAILED}: {reason}")

    def _give_up(self, reason: str, error: MPDError, request_error: str) -> None:
        self._auto_reconnect = False
        self._gave_up_error = request_error
        self._cancel_timer()
        self._fail_requests(request_error)
        self.model.update(retries_left=self._retries_left, auto_reconnect=False,
                          last_error=reason)
        self._notify(ConnectErrorFatal(reason, error))
        self.events.set_event('terminated')

    def _on_line(self, generation: int, line: str) -> None:
        if generation != self._generation:
            return

        if self._phase is ConnectionPhase.HANDSHAKE_PENDING:
            self._on_handshake(line)
        elif self._phase is ConnectionPhase.READY:
            self._on_response_line(line)

    def _on_handshake(self, line: str) -> None:
        version = self._decoder.match_handshake(line)

        if version is None:
            reason = f"Not a {self.config.protocol_name} server - welcome string was: '{line}'"
            logger.error(reason)
            self._teardown()
            self._set_phase(ConnectionPhase.DISCONNECTED)
            error = ProtocolError(reason, line=line,
                                  error_code=ErrorCodes.HANDSHAKE_MISMATCH)
            self._give_up(reason, error, f"{CONNECTION_FAILED}: {reason}")
            return

        logger.info(f"Connected to {self.config.protocol_name} server version {version}")
        self._retries_left = self.config.max_retries
        self._classifier.reset()
        self._set_phase(ConnectionPhase.READY, server_version=version,
                        connected_at=datetime.now(),
                        retries_left=self._retries_left, last_error=None)
        self._notify(Connected(version))
        self.events.set_event('ready')

        while self._outbox:
            self._write(self._outbox.popleft())

    def _on_response_line(self, line: str) -> None:
        request = self._classifier.feed(line)
        if request is None:
            return

        if request.succeeded:
            self._notify(DataReady(request))
        else:
            self._notify(ErrorReported(request, request.error))

        if not self._queue:
            self.events.set_event('idle')

    def _on_closed(self, generation: int, error: Optional[Exception]) -> None:
        if generation != self._generation:
            return

        if self._phase is ConnectionPhase.HANDSHAKE_PENDING:
            self._teardown()
            self._set_phase(ConnectionPhase.DISCONNECTED)
            reason = f"connection closed before greeting: {describe_error(error)}"
            self._connect_error(reason, error)
            return

        if self._phase is not ConnectionPhase.READY:
            return

        logger.warning(f"Connection lost: {describe_error(error)}")
        self._teardown()
        self._set_phase(ConnectionPhase.DISCONNECTED, server_version=None,
                        last_error=describe_error(error))
        self._fail_in_flight(CONNECTION_RESET)
        self._notify(Disconnected())

        if self._auto_reconnect:
            self._schedule_reconnect()

    def _on_submit(self, _generation, request: Request) -> None:
        if self.events.is_set('terminated') and self._shutdown_requested:
            self._fail(request, CONNECTION_SHUT_DOWN)
            return

        # Once connecting gave up, requests fail until connect() is called again
        if self._gave_up_error is not None:
            self._fail(request, self._gave_up_error)
            return

        if self._phase is ConnectionPhase.READY:
            self._write(request)
        else:
            logger.debug(f"Holding {request!r} until the connection is ready")
            self._outbox.append(request)

    def _write(self, request: Request) -> None:
        # Only requests that reach the wire may enter the queue
        try:
            data = self._encoder.encode_commands(request.commands)
        except (ValueError, UnicodeError) as e:
            logger.error(f"Cannot encode {request!r}: {e}")
            self._fail(request, f"{INVALID_COMMAND}: {e}")
            return

        self._queue.push(request)
        self.events.clear_event('idle')
        logger.debug(f">> {request.commands!r}")
        try:
            self._connection.send_bytes(data)
        except OSError as e:
            # The reader reports the close; the request is failed with the rest
            logger.error(f"Failed to write {request!r}: {e}")
            self._connection.disconnect()

    def _on_shutdown(self, _generation, _payload) -> None:
        logger.info("Shutting down connection")
        was_open = self._phase in (ConnectionPhase.HANDSHAKE_PENDING, ConnectionPhase.READY)

        self._auto_reconnect = False
        self._cancel_timer()
        self._teardown()
        self._set_phase(ConnectionPhase.DISCONNECTED, auto_reconnect=False,
                        server_version=None)
        self._fail_requests(CONNECTION_SHUT_DOWN)

        if was_open:
            self._notify(Disconnected())
        self.events.set_event('terminated')

    # ========== Helpers ==========

    def _teardown(self) -> None:
        """Close the socket and invalidate events from it."""
        self._generation += 1
        self._classifier.reset()
        if self._connection is not None:
            self._connection.disconnect()
            self._connection = None
        if self._reader is not None:
            self._reader.stop(timeout=1.0)
            self._reader = None
        self.events.clear_event('ready')

    def _schedule_reconnect(self) -> None:
        self._cancel_timer()
        wait = self.config.retry_wait
        logger.info(f"Reconnecting in {wait}s")
        self._timer = threading.Timer(
            wait, self._post, args=('reconnect', self._generation, None)
        )
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fail_in_flight(self, message: str) -> None:
        for request in self._queue.drain():
            self._fail(request, message)
        self.events.set_event('idle')

    def _fail_requests(self, message: str) -> None:
        """Fail every written and every unsent request."""
        self._fail_in_flight(message)
        while self._outbox:
            self._fail(self._outbox.popleft(), message)

    def _fail(self, request: Request, message: str) -> None:
        request.fail(message)
        self._notify(ErrorReported(request, message))

    def _set_phase(self, phase: ConnectionPhase, **changes) -> None:
        if phase is not self._phase:
            logger.debug(f"Phase {self._phase.value} -> {phase.value}")
        self._phase = phase
        self.model.update(phase=phase, **changes)

    def _notify(self, notification: Notification) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(notification)
            except Exception as e:
                logger.exception(f"Listener error on {notification.name}: {e}")

    def _check_not_shut_down(self) -> None:
        if self._shutdown_requested:
            raise StateError("Connection manager has been shut down",
                             current_state='shutdown',
                             error_code=ErrorCodes.SHUT_DOWN)
