"""
Background Socket Reader for the MPD line protocol.

This module provides a continuous background reader that drains the socket,
splits the byte stream into newline-terminated lines and hands each decoded
line to a handler. This prevents socket buffer buildup and lets the
connection owner process lines on its own thread.

Architecture:
    SocketReader (background thread)
        └── Continuously reads from the socket
        └── Splits complete lines and decodes them
        └── Calls line_handler(line) for every line, in order
        └── Calls close_handler(error) exactly once when the socket ends
"""

import logging
import socket
import threading
from typing import Callable, Dict, Optional

from py2mpd.core.tcp_protocol import ProtocolDecoder

logger = logging.getLogger(__name__)


class SocketReader:
    """
    Background thread that continuously reads lines from a socket.

    close_handler receives None when the peer closed the connection or
    stop() was called, and the exception when a socket error ended reading.
    """

    CHUNK_SIZE = 4096
    # Lines longer than this are a framing violation
    MAX_LINE_LENGTH = 1024 * 1024

    def __init__(self, sock: socket.socket,
                 line_handler: Callable[[str], None],
                 close_handler: Callable[[Optional[Exception]], None],
                 decoder: Optional[ProtocolDecoder] = None,
                 poll_interval: float = 0.5):
        """
        Initialize the socket reader.

        Args:
            sock: The connected socket to read from
            line_handler: Called with every decoded line
            close_handler: Called once when reading ends
            decoder: Decoder used to turn raw lines into text
            poll_interval: Socket timeout used to check for stop()
        """
        self._socket = sock
        self._line_handler = line_handler
        self._close_handler = close_handler
        self._decoder = decoder or ProtocolDecoder()
        self._poll_interval = poll_interval
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._buffer = b''

        # Statistics
        self._stats = {
            'lines_read': 0,
            'bytes_read': 0,
            'socket_errors': 0,
        }

    def start(self):
        """Start the background reader thread."""
        with self._lock:
            if self._running:
                logger.warning("SocketReader already running")
                return

            self._running = True
            self._thread = threading.Thread(
                target=self._read_loop,
                name="SocketReader",
                daemon=True
            )
            self._thread.start()
            logger.debug("SocketReader background thread started")

    def stop(self, timeout: float = 2.0):
        """
        Stop the background reader thread.

        Args:
            timeout: Seconds to wait for thread to stop
        """
        with self._lock:
            if not self._running:
                return
            self._running = False

        if (self._thread and self._thread.is_alive()
                and self._thread is not threading.current_thread()):
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("SocketReader thread did not stop cleanly")

        logger.debug("SocketReader stopped")

    def is_running(self) -> bool:
        """Check if reader is running."""
        return self._running

    def _read_loop(self):
        """Main read loop - runs in background thread."""
        error: Optional[Exception] = None

        try:
            self._socket.settimeout(self._poll_interval)
        except OSError as e:
            error = e
            self._running = False

        while self._running:
            try:
                chunk = self._socket.recv(self.CHUNK_SIZE)
            except socket.timeout:
                # Normal timeout - check if we should continue
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Socket error in reader: {e}")
                    self._stats['socket_errors'] += 1
                    error = e
                break

            if not chunk:
                logger.info("Socket closed by peer")
                break

            self._stats['bytes_read'] += len(chunk)
            self._buffer += chunk

            try:
                self._drain_lines()
            except ValueError as e:
                logger.error(f"Framing error: {e}")
                error = e
                break

        self._running = False
        if self._buffer:
            logger.debug(f"Discarding {len(self._buffer)} bytes of incomplete line")
        logger.debug(f"SocketReader read loop exiting. Stats: {self._stats}")
        self._close_handler(error)

    def _drain_lines(self):
        """Hand every complete line in the buffer to the line handler."""
        while True:
            newline = self._buffer.find(b'\n')
            if newline < 0:
                if len(self._buffer) > self.MAX_LINE_LENGTH:
                    raise ValueError(f"Line exceeds {self.MAX_LINE_LENGTH} bytes")
                return

            raw, self._buffer = self._buffer[:newline + 1], self._buffer[newline + 1:]
            line = self._decoder.decode_line(raw)
            self._stats['lines_read'] += 1
            logger.debug(f"<< {line}")
            self._line_handler(line)

    def get_stats(self) -> Dict[str, int]:
        """Get reader statistics."""
        return self._stats.copy()
