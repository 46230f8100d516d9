# py2mpd package
"""Resilient, pipelined client connection for the MPD line protocol."""

__version__ = "0.1.0"

from .core.connection_manager import ConnectionManager
from .models.request import OutputShape, Request

__all__ = [
    "ConnectionManager",
    "OutputShape",
    "Request",
]
