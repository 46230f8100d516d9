"""
Unit tests for line protocol encoding and decoding.

Tests the ProtocolEncoder and ProtocolDecoder classes and the field
splitting helpers used to parse MPD data lines.
"""

import unittest

from py2mpd.core.tcp_protocol import (
    LineKind,
    ParsedLine,
    ProtocolDecoder,
    ProtocolEncoder,
    normalize_field,
    split_field,
)


class TestProtocolEncoder(unittest.TestCase):
    """Test ProtocolEncoder class."""

    def setUp(self):
        """Set up test fixtures."""
        self.encoder = ProtocolEncoder()

    def test_encode_single_command(self):
        """Test that a command is newline terminated."""
        self.assertEqual(self.encoder.encode_commands(["status"]), b"status\n")

    def test_encode_multiple_commands_in_order(self):
        """Test that commands are written one per line, in order."""
        data = self.encoder.encode_commands(
            ["command_list_begin", "add a.ogg", "play", "command_list_end"])
        self.assertEqual(data, b"command_list_begin\nadd a.ogg\nplay\ncommand_list_end\n")

    def test_encode_does_not_quote_arguments(self):
        """Test that arguments are sent verbatim."""
        data = self.encoder.encode_commands(['find artist "Miles Davis"'])
        self.assertEqual(data, b'find artist "Miles Davis"\n')

    def test_encode_uses_configured_encoding(self):
        """Test non-ASCII commands are encoded as UTF-8."""
        data = self.encoder.encode_commands(["add café.ogg"])
        self.assertEqual(data, "add café.ogg\n".encode('utf-8'))

    def test_encode_empty_list_raises(self):
        """Test that an empty command list is rejected."""
        with self.assertRaises(ValueError):
            self.encoder.encode_commands([])

    def test_encode_multiline_command_raises(self):
        """Test that embedded line terminators are rejected."""
        for command in ["status\nplay", "status\r"]:
            with self.assertRaises(ValueError):
                self.encoder.encode_commands([command])


class TestProtocolDecoder(unittest.TestCase):
    """Test ProtocolDecoder class."""

    def setUp(self):
        """Set up test fixtures."""
        self.decoder = ProtocolDecoder()

    def test_decode_line_strips_terminator(self):
        """Test that LF and CRLF terminators are removed."""
        self.assertEqual(self.decoder.decode_line(b"volume: 80\n"), "volume: 80")
        self.assertEqual(self.decoder.decode_line(b"volume: 80\r\n"), "volume: 80")

    def test_decode_line_replaces_invalid_bytes(self):
        """Test that undecodable bytes do not raise."""
        line = self.decoder.decode_line(b"file: \xff.ogg\n")
        self.assertTrue(line.startswith("file: "))

    def test_match_handshake_returns_version(self):
        """Test that a valid greeting yields the version."""
        self.assertEqual(self.decoder.match_handshake("OK MPD 0.23.5"), "0.23.5")

    def test_match_handshake_rejects_other_lines(self):
        """Test that anything but the expected greeting is rejected."""
        for line in ["SSH-2.0-OpenSSH_9.6", "OK", "OK MPD", "ok MPD 0.23", "OK XYZ 1.0", ""]:
            self.assertIsNone(self.decoder.match_handshake(line), line)

    def test_match_handshake_custom_protocol_name(self):
        """Test that the expected protocol name is configurable."""
        decoder = ProtocolDecoder(protocol_name="XYZ")
        self.assertEqual(decoder.match_handshake("OK XYZ 1.0"), "1.0")
        self.assertIsNone(decoder.match_handshake("OK MPD 0.23.5"))

    def test_classify_ok(self):
        """Test that the bare OK line is the success sentinel."""
        self.assertEqual(ProtocolDecoder.classify("OK"), ParsedLine(LineKind.OK))

    def test_classify_ack(self):
        """Test that ACK lines carry their message."""
        parsed = ProtocolDecoder.classify("ACK [50@0] {play} No such song")
        self.assertIs(parsed.kind, LineKind.ACK)
        self.assertEqual(parsed.text, "[50@0] {play} No such song")

    def test_classify_data(self):
        """Test that everything else is a data line."""
        for line in ["volume: 80", "OK MPD 0.23.5", "OKAY: 1", "ACKnowledged: yes", ""]:
            parsed = ProtocolDecoder.classify(line)
            self.assertIs(parsed.kind, LineKind.DATA, line)
            self.assertEqual(parsed.text, line)


class TestFieldHelpers(unittest.TestCase):
    """Test split_field and normalize_field."""

    def test_split_on_first_separator(self):
        """Test that only the first separator splits the line."""
        self.assertEqual(split_field("Title: Intro: Part 1"), ("Title", "Intro: Part 1"))

    def test_split_separator_needs_whitespace(self):
        """Test that a colon without whitespace does not split."""
        self.assertEqual(split_field("time: 12:34"), ("time", "12:34"))
        self.assertEqual(split_field("nocolon"), ("nocolon", None))
        self.assertEqual(split_field("a:b"), ("a:b", None))

    def test_split_consumes_all_separator_whitespace(self):
        """Test that runs of whitespace after the colon are dropped."""
        self.assertEqual(split_field("volume:   80"), ("volume", "80"))

    def test_normalize_field(self):
        """Test lower-casing and dash replacement."""
        self.assertEqual(normalize_field("Last-Modified"), "last_modified")
        self.assertEqual(normalize_field("MUSICBRAINZ_TRACKID"), "musicbrainz_trackid")


if __name__ == '__main__':
    unittest.main()
