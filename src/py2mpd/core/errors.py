"""
Unified error handling framework for py2mpd.

This module defines the standard error hierarchy used across the client.
Errors raised to the owner are always MPDError subclasses; transport
exceptions are wrapped before they are attached to lifecycle notifications.

Error Code Ranges:
- 1000-1999: Connection errors
- 2000-2999: Protocol and command errors
- 5000-5999: State errors
- 6000-6999: Configuration errors
- 7000-7999: Validation errors
- 9000-9999: Unknown/System errors
"""

from typing import Optional, Dict, Any, List
from datetime import datetime
import traceback


class MPDError(Exception):
    """
    Base exception for all py2mpd errors.

    Provides structured error information with context tracking.
    """

    # Base error code for unknown errors
    DEFAULT_CODE = 9000

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """
        Initialize an MPD error.

        Args:
            message: Human-readable error description
            error_code: Numeric error code for categorization
            context: Additional context information (WHERE)
            cause: Original exception if this wraps another error
            suggestions: List of possible solutions or next steps
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.DEFAULT_CODE
        self.context = context or {}
        self.cause = cause
        self.suggestions = suggestions or []
        self.timestamp = datetime.now()

        if cause:
            self.stack_trace = ''.join(traceback.format_exception(
                type(cause), cause, cause.__traceback__))
            self.context['original_error'] = str(cause)
            self.context['original_type'] = type(cause).__name__
        else:
            self.stack_trace = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'code': self.error_code,
            'context': self.context,
            'suggestions': self.suggestions,
            'timestamp': self.timestamp.isoformat(),
            'cause': str(self.cause) if self.cause else None,
            'stack_trace': self.stack_trace
        }

    def format_user_message(self) -> str:
        """Format error for user display (without technical details)."""
        msg = f"{self.message}"
        if self.suggestions:
            msg += "\n\nSuggestions:"
            for i, suggestion in enumerate(self.suggestions, 1):
                msg += f"\n  {i}. {suggestion}"
        return msg

    def format_log_message(self) -> str:
        """Format error for logging (with all details)."""
        parts = [
            f"[{self.error_code}] {self.__class__.__name__}: {self.message}"
        ]

        if self.context:
            parts.append(f"Context: {self.context}")

        if self.cause:
            parts.append(f"Caused by: {self.cause}")

        return " | ".join(parts)


class MPDConnectionError(MPDError):
    """Errors related to the transport socket: refused, dropped, timed out."""
    DEFAULT_CODE = 1001

    def __init__(self, message: str, host: Optional[str] = None,
                 port: Optional[int] = None, **kwargs):
        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['category'] = 'CONNECTION'
        if host is not None:
            kwargs['context']['host'] = host
        if port is not None:
            kwargs['context']['port'] = port
        super().__init__(message, **kwargs)


class ProtocolError(MPDError):
    """The peer does not speak the expected protocol, or broke its framing."""
    DEFAULT_CODE = 2003

    def __init__(self, message: str, line: Optional[str] = None, **kwargs):
        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['category'] = 'PROTOCOL'
        if line is not None:
            kwargs['context']['line'] = line
        super().__init__(message, **kwargs)


class CommandError(MPDError):
    """The server answered a request with an ACK sentinel."""
    DEFAULT_CODE = 2002

    def __init__(self, message: str, ack=None, **kwargs):
        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['category'] = 'COMMAND'
        if ack is not None:
            kwargs['context']['ack_code'] = ack.code
            kwargs['context']['command'] = ack.command
        self.ack = ack
        super().__init__(message, **kwargs)


class StateError(MPDError):
    """An operation was attempted in a state that does not allow it."""
    DEFAULT_CODE = 5004

    def __init__(self, message: str, current_state: Optional[str] = None, **kwargs):
        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['category'] = 'STATE'
        if current_state is not None:
            kwargs['context']['state'] = current_state
        super().__init__(message, **kwargs)


class ConfigurationError(MPDError):
    """Errors related to configuration files and settings."""
    DEFAULT_CODE = 6001

    def __init__(self, message: str, setting_name: Optional[str] = None, **kwargs):
        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['category'] = 'CONFIGURATION'
        if setting_name:
            kwargs['context']['setting'] = setting_name
        super().__init__(message, **kwargs)


class ValidationError(MPDError):
    """Errors related to input validation and parameter checking."""
    DEFAULT_CODE = 7001

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        if 'context' not in kwargs or kwargs['context'] is None:
            kwargs['context'] = {}
        kwargs['context']['category'] = 'VALIDATION'
        if field_name:
            kwargs['context']['field'] = field_name
        super().__init__(message, **kwargs)


# Error code constants for common scenarios
class ErrorCodes:
    """Standard error codes for common error scenarios."""

    # Connection errors (1000-1999)
    CONNECTION_REFUSED = 1001
    CONNECTION_TIMEOUT = 1002
    CONNECTION_LOST = 1003
    SOCKET_ERROR = 1004
    RETRIES_EXHAUSTED = 1005

    # Protocol / command errors (2000-2999)
    INVALID_COMMAND = 2001
    COMMAND_FAILED = 2002
    PROTOCOL_ERROR = 2003
    HANDSHAKE_MISMATCH = 2004

    # State errors (5000-5999)
    ALREADY_COMPLETED = 5001
    SHUT_DOWN = 5002

    # Configuration errors (6000-6999)
    CONFIG_NOT_FOUND = 6001
    CONFIG_INVALID = 6002

    # Validation errors (7000-7999)
    INVALID_PARAMETER = 7001

    # System errors (9000-9999)
    UNKNOWN_ERROR = 9000


def wrap_external_error(e: Exception, message: str, error_class=MPDError, **context) -> MPDError:
    """
    Wrap an external exception in an MPDError.

    Args:
        e: The original exception
        message: Context-specific error message
        error_class: The MPDError subclass to use
        **context: Additional context information

    Returns:
        An MPDError instance wrapping the original exception
    """
    return error_class(
        message=message,
        cause=e,
        context=context
    )
