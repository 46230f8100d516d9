"""
Response classification and request correlation.

The server answers pipelined requests strictly in the order they were
sent, so the head of the RequestQueue is always the request whose response
is being received. ResponseClassifier trusts this absolutely: every data
line and every sentinel is attributed to the queue head and nothing else.
An out-of-order server cannot be detected here.

Neither class is thread-safe. Both are owned by the ConnectionManager and
only touched from its dispatcher thread.
"""

import logging
from collections import deque
from typing import Any, Deque, Iterator, List, Optional

from py2mpd.core.tcp_protocol import (
    LineKind,
    ProtocolDecoder,
    normalize_field,
    split_field,
)
from py2mpd.models.item import RECORD_START_FIELDS, Item, create_item
from py2mpd.models.request import AckInfo, OutputShape, Request

logger = logging.getLogger(__name__)


class RequestQueue:
    """
    FIFO of requests written to the wire and awaiting their response.

    Only push-to-tail and pop-from-head are allowed.
    """

    def __init__(self):
        self._requests: Deque[Request] = deque()

    def push(self, request: Request) -> None:
        self._requests.append(request)

    def pop(self) -> Request:
        """
        Remove and return the head request.

        Raises:
            IndexError: If the queue is empty
        """
        return self._requests.popleft()

    @property
    def head(self) -> Optional[Request]:
        return self._requests[0] if self._requests else None

    def drain(self) -> List[Request]:
        """Remove and return every queued request, head first."""
        drained = list(self._requests)
        self._requests.clear()
        return drained

    def __len__(self) -> int:
        return len(self._requests)

    def __bool__(self) -> bool:
        return bool(self._requests)

    def __iter__(self) -> Iterator[Request]:
        return iter(list(self._requests))


class ResponseClassifier:
    """
    Turns the stream of post-handshake lines into completed requests.

    Data lines are accumulated in an incoming buffer under the transform
    selected by the head request's OutputShape. A sentinel completes the
    head request and resets the buffer.

    Example:
        >>> queue = RequestQueue()
        >>> classifier = ResponseClassifier(queue)
        >>> queue.push(Request(["status"], OutputShape.KEY_VALUE_PAIRS))
        >>> classifier.feed("volume: 80")
        >>> done = classifier.feed("OK")
        >>> done.result
        ['volume', '80']
    """

    def __init__(self, queue: RequestQueue):
        self.queue = queue
        self._incoming: List[Any] = []
        # Index into _incoming of the record receiving fields
        self._record_index: Optional[int] = None

    @property
    def buffered(self) -> List[Any]:
        """Copy of the data accumulated for the head request."""
        return list(self._incoming)

    def reset(self) -> None:
        """Discard any partially accumulated response."""
        self._incoming = []
        self._record_index = None

    def feed(self, line: str) -> Optional[Request]:
        """
        Process one inbound line.

        Returns:
            The request completed by this line, or None
        """
        parsed = ProtocolDecoder.classify(line)

        if not self.queue:
            logger.warning(f"Dropping line with no request in flight: {line!r}")
            return None

        if parsed.kind is LineKind.OK:
            return self._complete_success()
        if parsed.kind is LineKind.ACK:
            return self._complete_error(parsed.text)

        self._accumulate(self.queue.head, parsed.text)
        return None

    def _complete_success(self) -> Request:
        request = self.queue.pop()
        request.complete(self._incoming)
        logger.debug(f"Request {request.commands!r} succeeded with {len(self._incoming)} entries")
        self.reset()
        return request

    def _complete_error(self, message: str) -> Request:
        request = self.queue.pop()
        if self._incoming:
            logger.warning(f"Discarding {len(self._incoming)} data entries before ACK")
        request.fail(message, AckInfo.parse(message))
        logger.debug(f"Request {request.commands!r} failed: {message}")
        self.reset()
        return request

    def _accumulate(self, request: Request, line: str) -> None:
        shape = request.shape

        if shape is OutputShape.RAW:
            self._incoming.append(line)

        elif shape is OutputShape.KEY_VALUE_PAIRS:
            key, value = split_field(line)
            self._incoming.append(key)
            if value is not None:
                self._incoming.append(value)

        elif shape is OutputShape.SINGLE_FIELD_STRIPPED:
            _key, value = split_field(line)
            self._incoming.append(value)

        elif shape is OutputShape.STRUCTURED_RECORDS:
            self._accumulate_record(line)

    def _accumulate_record(self, line: str) -> None:
        field, value = split_field(line)
        field = normalize_field(field)

        if field in RECORD_START_FIELDS:
            self._incoming.append(create_item(field, value))
            self._record_index = len(self._incoming) - 1
            return

        if self._record_index is None:
            logger.warning(f"Field '{field}' arrived before any record start; "
                           f"creating an untyped record")
            self._incoming.append(Item())
            self._record_index = len(self._incoming) - 1

        self._incoming[self._record_index].set(field, value)
