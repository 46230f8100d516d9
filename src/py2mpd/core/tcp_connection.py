"""
TCP Connection management for MPD communication.

This module handles low-level socket operations for connecting to and
communicating with an MPD server: opening the socket, thread-safe writes
and closing. Reading is done by SocketReader on a background thread.
"""

import socket
import logging
import threading
from typing import Tuple, Optional


class TCPConnection:
    """
    Manages the TCP socket connected to the server.

    Writes are serialized by a lock so that the bytes of one request are
    never interleaved with another's.

    Example:
        >>> connection = TCPConnection()
        >>> sock = connection.connect("127.0.0.1", 6600)
        >>> connection.send_bytes(b"status\\n")
        >>> connection.disconnect()
    """

    def __init__(self):
        """Initialize TCP connection manager."""
        self._socket: Optional[socket.socket] = None
        self._lock = threading.Lock()
        self._connected = False
        self.logger = logging.getLogger(__name__)

        # Connection info
        self._host: Optional[str] = None
        self._port: Optional[int] = None

    def connect(
        self,
        host: str,
        port: int,
        timeout: float = 2.0
    ) -> socket.socket:
        """
        Open a socket to the server.

        Args:
            host: Server hostname or IP address
            port: Server port number
            timeout: Connection timeout in seconds (default: 2.0)

        Returns:
            The connected socket, in blocking mode

        Raises:
            ValueError: If host or port is invalid
            socket.timeout: If connection times out
            ConnectionRefusedError: If connection is refused
            OSError: For other socket errors
        """
        self._validate_host(host)
        self._validate_port(port)

        with self._lock:
            if self._connected:
                self.logger.warning("Already connected. Disconnecting first.")
                self._disconnect_unsafe()

            try:
                self.logger.info(f"Connecting to {host}:{port}")
                self._socket = socket.create_connection((host, port), timeout=timeout)
                self._socket.settimeout(None)  # Clear timeout after connection
                self.logger.info(f"Connected to {host}:{port}")

                self._host = host
                self._port = port
                self._connected = True
                return self._socket

            except (socket.timeout, ConnectionRefusedError, OSError) as e:
                self.logger.error(f"Connection to {host}:{port} failed: {e}")
                self._disconnect_unsafe()
                raise

    def disconnect(self) -> None:
        """
        Close the socket.

        This method is thread-safe and can be called multiple times safely.
        """
        with self._lock:
            self._disconnect_unsafe()

    def _disconnect_unsafe(self) -> None:
        """Internal disconnect without locking (called when lock is already held)."""
        if self._socket:
            try:
                # Wakes up a reader blocked in recv()
                self._socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                self._socket.close()
                self.logger.info("Closed socket")
            except OSError as e:
                self.logger.error(f"Error closing socket: {e}")
            finally:
                self._socket = None

        self._connected = False
        self._host = None
        self._port = None

    def send_bytes(self, data: bytes) -> None:
        """
        Send bytes through the socket.

        Raises:
            ConnectionError: If not connected
            ValueError: If data is not bytes
            OSError: If send fails
        """
        if not isinstance(data, bytes):
            raise ValueError(f"Data must be bytes, got {type(data)}")

        with self._lock:
            if not self._connected or self._socket is None:
                raise ConnectionError("Not connected to server")

            try:
                self._socket.sendall(data)
                self.logger.debug(f"Sent {len(data)} bytes")
            except OSError as e:
                self.logger.error(f"Failed to send data: {e}")
                # Connection likely broken
                self._connected = False
                raise

    def is_connected(self) -> bool:
        """Check if the socket is connected."""
        with self._lock:
            return self._connected

    def get_connection_info(self) -> Tuple[Optional[str], Optional[int]]:
        """
        Get current connection information.

        Returns:
            Tuple of (host, port) or (None, None) if not connected
        """
        with self._lock:
            return self._host, self._port

    @staticmethod
    def _validate_host(host: str) -> None:
        """
        Validate the host name.

        Raises:
            ValueError: If host is invalid
        """
        if not isinstance(host, str) or not host.strip():
            raise ValueError(f"Invalid host: {host!r}")

    @staticmethod
    def _validate_port(port: int) -> None:
        """
        Validate port number.

        Raises:
            ValueError: If port is invalid
        """
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValueError(f"Port must be an integer, got {type(port)}")

        if port < 1 or port > 65535:
            raise ValueError(f"Port must be 1-65535, got {port}")
