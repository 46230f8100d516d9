"""
Core layer for MPD communication.

This package contains the low-level line protocol, the transport socket
and the connection manager that pipelines requests over it.
"""

from .errors import (
    MPDError,
    MPDConnectionError,
    ProtocolError,
    CommandError,
    StateError,
    ConfigurationError,
    ValidationError,
    ErrorCodes,
)
from .tcp_protocol import ProtocolEncoder, ProtocolDecoder, LineKind, ParsedLine
from .tcp_connection import TCPConnection
from .socket_reader import SocketReader
from .response_classifier import RequestQueue, ResponseClassifier
from .events import EventManager
from .connection_manager import ConnectionManager

__all__ = [
    'MPDError',
    'MPDConnectionError',
    'ProtocolError',
    'CommandError',
    'StateError',
    'ConfigurationError',
    'ValidationError',
    'ErrorCodes',
    'ProtocolEncoder',
    'ProtocolDecoder',
    'LineKind',
    'ParsedLine',
    'TCPConnection',
    'SocketReader',
    'RequestQueue',
    'ResponseClassifier',
    'EventManager',
    'ConnectionManager',
]
