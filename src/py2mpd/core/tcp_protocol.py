"""
Line protocol encoding and decoding for MPD communication.

The protocol is text based and framed by newlines:

    Client -> server:
        One command per line. A multi-command unit is wrapped with a
        "command_list_begin" line before and a "command_list_end" line
        after its member commands.

    Server -> client:
        First line after connecting:  OK <protocol-name> <version>
        Response to one request:      zero or more data lines, then either
                                      "OK" (success) or "ACK <message>" (error)
        Data lines:                   "<field>: <value>"

Every inbound line is classified into exactly one LineKind by
ProtocolDecoder.classify(); no other code inspects raw line content.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple


SUCCESS_SENTINEL = "OK"
ERROR_PREFIX = "ACK "

# Field separator: first colon followed by whitespace
_FIELD_SEPARATOR = re.compile(r':\s+')


class LineKind(Enum):
    """Categories of inbound lines once the handshake is done."""

    OK = "ok"
    ACK = "ack"
    DATA = "data"


@dataclass(frozen=True)
class ParsedLine:
    """
    A classified inbound line.

    Attributes:
        kind: Line category
        text: The ACK message for LineKind.ACK, the full line for LineKind.DATA,
              empty for LineKind.OK
    """

    kind: LineKind
    text: str = ""


class ProtocolEncoder:
    """
    Encodes commands into wire format.

    Commands are sent as-is: the encoder adds line terminators but never
    quotes or escapes arguments.

    Example:
        >>> encoder = ProtocolEncoder()
        >>> encoder.encode_commands(["status", "currentsong"])
        b'status\\ncurrentsong\\n'
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def encode_commands(self, commands: Iterable[str]) -> bytes:
        """
        Encode commands, one per newline-terminated line.

        Raises:
            ValueError: If there are no commands or a command spans lines
        """
        lines = []
        for command in commands:
            if '\n' in command or '\r' in command:
                raise ValueError(f"Command must be a single line: {command!r}")
            lines.append(command + '\n')
        if not lines:
            raise ValueError("No commands to encode")
        return ''.join(lines).encode(self.encoding)


class ProtocolDecoder:
    """
    Decodes and classifies inbound protocol lines.

    Example:
        >>> decoder = ProtocolDecoder()
        >>> decoder.match_handshake("OK MPD 0.23.5")
        '0.23.5'
        >>> decoder.classify("ACK [5@0] {} unknown command")
        ParsedLine(kind=<LineKind.ACK: 'ack'>, text='[5@0] {} unknown command')
    """

    def __init__(self, protocol_name: str = "MPD", encoding: str = "utf-8"):
        self.protocol_name = protocol_name
        self.encoding = encoding
        self._handshake = re.compile(rf'^OK {re.escape(protocol_name)} (.*)$')

    def decode_line(self, raw: bytes) -> str:
        """Decode one raw line, dropping its terminator."""
        text = raw.decode(self.encoding, errors='replace')
        if text.endswith('\n'):
            text = text[:-1]
        if text.endswith('\r'):
            text = text[:-1]
        return text

    def match_handshake(self, line: str) -> Optional[str]:
        """
        Check the greeting line.

        Returns:
            The advertised server version, or None if the line is not a
            greeting of the expected protocol
        """
        match = self._handshake.match(line)
        if match is None:
            return None
        return match.group(1)

    @staticmethod
    def classify(line: str) -> ParsedLine:
        """Classify a post-handshake line as a sentinel or a data line."""
        if line == SUCCESS_SENTINEL:
            return ParsedLine(LineKind.OK)
        if line.startswith(ERROR_PREFIX):
            return ParsedLine(LineKind.ACK, line[len(ERROR_PREFIX):])
        return ParsedLine(LineKind.DATA, line)


def split_field(line: str) -> Tuple[str, Optional[str]]:
    """
    Split a data line on its first field separator.

    Returns:
        (field, value); value is None when the line has no separator

    Example:
        >>> split_field("Title: Intro: Part 1")
        ('Title', 'Intro: Part 1')
    """
    parts = _FIELD_SEPARATOR.split(line, maxsplit=1)
    if len(parts) == 1:
        return parts[0], None
    return parts[0], parts[1]


def normalize_field(field: str) -> str:
    """Lower-case a field name and replace '-' separators by '_'."""
    return field.lower().replace('-', '_')
