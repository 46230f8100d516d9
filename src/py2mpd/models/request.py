"""
Request model for pipelined MPD communication.

A Request is one unit of work handed to the ConnectionManager: the command
lines to write and the shape the response data lines must be parsed into.
The request is owned by the request queue from submission until exactly one
completion (success or error) has been recorded.

Classes:
    OutputShape: How inbound data lines are interpreted
    RequestStatus: Lifecycle of a request
    AckInfo: Parsed form of an "ACK" error sentinel
    Request: The unit of pipelined work
"""

import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence

from py2mpd.core.errors import CommandError, ErrorCodes, StateError, ValidationError


COMMAND_LIST_BEGIN = "command_list_begin"
COMMAND_LIST_END = "command_list_end"

# ACK [error@command_listNum] {current_command} message_text
_ACK_PATTERN = re.compile(r'^\[(\d+)@(\d+)\]\s+\{([^}]*)\}\s*(.*)$')


class OutputShape(Enum):
    """
    Declares how data lines belonging to a request are accumulated.

    Shapes:
        RAW: Lines are kept verbatim
        STRUCTURED_RECORDS: Lines are folded into Item records
        KEY_VALUE_PAIRS: Each line adds its key and its value
        SINGLE_FIELD_STRIPPED: Each line adds only its value
    """

    RAW = "raw"
    STRUCTURED_RECORDS = "as_items"
    KEY_VALUE_PAIRS = "as_kv"
    SINGLE_FIELD_STRIPPED = "strip_first"


class RequestStatus(Enum):
    """Request lifecycle states."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AckInfo:
    """
    Parsed content of an ACK sentinel.

    Attributes:
        text: Human-readable error text from the server
        code: Server error code, None if the message was not structured
        list_index: Index of the failing command inside a command list
        command: Name of the command that failed
    """

    text: str
    code: Optional[int] = None
    list_index: Optional[int] = None
    command: Optional[str] = None

    @classmethod
    def parse(cls, message: str) -> "AckInfo":
        """
        Parse the message part of an ACK line.

        Example:
            >>> AckInfo.parse("[50@0] {play} No such song")
            AckInfo(text='No such song', code=50, list_index=0, command='play')
        """
        match = _ACK_PATTERN.match(message)
        if not match:
            return cls(text=message)
        code, index, command, text = match.groups()
        return cls(text=text, code=int(code), list_index=int(index), command=command)


class Request:
    """
    One pipelined unit of work.

    Attributes:
        commands: Fully formed command strings, sent one per line
        shape: OutputShape governing how response data lines are parsed
        result: Parsed values once completed successfully, else None
        error: Error text from the server (or the core) once failed, else None
        ack: Parsed ACK details when the server answered with an error
        status: Current RequestStatus

    Example:
        >>> request = Request(["status"], OutputShape.KEY_VALUE_PAIRS)
        >>> manager.submit(request)
        >>> if request.wait(timeout=5.0) and request.succeeded:
        ...     print(request.result)
    """

    def __init__(self, commands: Sequence[str],
                 shape: OutputShape = OutputShape.RAW,
                 tag: Any = None):
        if isinstance(commands, str):
            commands = [commands]
        commands = list(commands)
        if not commands:
            raise ValidationError("Request needs at least one command",
                                  field_name='commands')
        for command in commands:
            if not isinstance(command, str):
                raise ValidationError(f"Command must be a string, got {type(command)}",
                                      field_name='commands')
            if '\n' in command or '\r' in command:
                raise ValidationError(f"Command must not contain a newline: {command!r}",
                                      field_name='commands',
                                      error_code=ErrorCodes.INVALID_COMMAND)
        if not isinstance(shape, OutputShape):
            raise ValidationError(f"Invalid output shape: {shape}", field_name='shape')

        self.commands: List[str] = commands
        self.shape = shape
        self.tag = tag
        self.result: Optional[List[Any]] = None
        self.error: Optional[str] = None
        self.ack: Optional[AckInfo] = None
        self.status = RequestStatus.PENDING
        self._done = threading.Event()

    @classmethod
    def command_list(cls, commands: Sequence[str],
                     shape: OutputShape = OutputShape.RAW,
                     tag: Any = None) -> "Request":
        """Build a request whose commands are wrapped in a command list."""
        wrapped = [COMMAND_LIST_BEGIN] + list(commands) + [COMMAND_LIST_END]
        return cls(wrapped, shape, tag)

    @property
    def is_complete(self) -> bool:
        return self.status is not RequestStatus.PENDING

    @property
    def succeeded(self) -> bool:
        return self.status is RequestStatus.SUCCEEDED

    def complete(self, data: List[Any]) -> None:
        """Mark the request successful with the accumulated data."""
        self._check_pending()
        self.result = data
        self.status = RequestStatus.SUCCEEDED
        self._done.set()

    def fail(self, message: str, ack: Optional[AckInfo] = None) -> None:
        """Mark the request failed with the given error text."""
        self._check_pending()
        self.error = message
        self.ack = ack
        self.status = RequestStatus.FAILED
        self._done.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the request completes.

        Returns:
            True if the request completed, False on timeout
        """
        return self._done.wait(timeout)

    def raise_for_error(self) -> None:
        """
        Raise CommandError if the request failed.

        Server-side failures carry the parsed ACK; failures produced by the
        connection itself (reset, shut down, gave up) carry none.
        """
        if self.status is not RequestStatus.FAILED:
            return
        code = ErrorCodes.COMMAND_FAILED if self.ack is not None else ErrorCodes.CONNECTION_LOST
        raise CommandError(self.error, ack=self.ack, error_code=code,
                           context={'commands': list(self.commands)})

    def _check_pending(self) -> None:
        if self.is_complete:
            raise StateError(
                f"Request {self.commands!r} already completed ({self.status.value})",
                current_state=self.status.value,
                error_code=ErrorCodes.ALREADY_COMPLETED
            )

    def __repr__(self) -> str:
        return (f"Request(commands={self.commands!r}, shape={self.shape.name}, "
                f"status={self.status.value})")
