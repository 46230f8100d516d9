"""Data models shared between the connection core and its owners."""

from .request import AckInfo, OutputShape, Request, RequestStatus
from .item import Item, Song, Directory, Playlist, RECORD_START_FIELDS
from .connection import (
    ConnectionConfig,
    ConnectionPhase,
    ConnectionStatus,
    ConnectionModel,
)
from .notifications import (
    Notification,
    Connected,
    ConnectErrorRetriable,
    ConnectErrorFatal,
    Disconnected,
    DataReady,
    ErrorReported,
)

__all__ = [
    'AckInfo',
    'OutputShape',
    'Request',
    'RequestStatus',
    'Item',
    'Song',
    'Directory',
    'Playlist',
    'RECORD_START_FIELDS',
    'ConnectionConfig',
    'ConnectionPhase',
    'ConnectionStatus',
    'ConnectionModel',
    'Notification',
    'Connected',
    'ConnectErrorRetriable',
    'ConnectErrorFatal',
    'Disconnected',
    'DataReady',
    'ErrorReported',
]
