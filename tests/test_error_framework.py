"""
Tests for the unified error handling framework.

Verifies that the error classes and formatting utilities work correctly.
"""

import unittest

from py2mpd.core.errors import (
    CommandError,
    ConfigurationError,
    ErrorCodes,
    MPDConnectionError,
    MPDError,
    ProtocolError,
    StateError,
    ValidationError,
    wrap_external_error,
)
from py2mpd.models.request import AckInfo


class TestMPDError(unittest.TestCase):
    """Test the base MPDError class."""

    def test_basic_error_creation(self):
        """Test creating a basic error."""
        error = MPDError(
            message="Test error",
            error_code=1001,
            context={'location': 'test'},
            suggestions=["Try again", "Check settings"]
        )

        self.assertEqual(error.message, "Test error")
        self.assertEqual(error.error_code, 1001)
        self.assertEqual(error.context['location'], 'test')
        self.assertEqual(len(error.suggestions), 2)
        self.assertIsNone(error.cause)
        self.assertIsNone(error.stack_trace)
        self.assertEqual(str(error), "Test error")

    def test_default_code(self):
        """Test the default error code of the base class."""
        self.assertEqual(MPDError("x").error_code, ErrorCodes.UNKNOWN_ERROR)

    def test_error_with_cause(self):
        """Test wrapping another exception."""
        try:
            raise ConnectionRefusedError(111, "Connection refused")
        except ConnectionRefusedError as e:
            error = MPDError("Connect failed", cause=e)

        self.assertIs(error.cause.__class__, ConnectionRefusedError)
        self.assertEqual(error.context['original_type'], 'ConnectionRefusedError')
        self.assertIn('ConnectionRefusedError', error.stack_trace)

    def test_to_dict(self):
        """Test serialization to a dictionary."""
        error = MPDError("Test", error_code=9001, context={'a': 1})
        data = error.to_dict()

        self.assertEqual(data['error_type'], 'MPDError')
        self.assertEqual(data['code'], 9001)
        self.assertEqual(data['context'], {'a': 1})
        self.assertIsNone(data['cause'])
        self.assertIn('timestamp', data)

    def test_format_user_message(self):
        """Test user message formatting with suggestions."""
        error = MPDError("Cannot connect", suggestions=["Start mpd", "Check MPD_HOST"])
        message = error.format_user_message()

        self.assertTrue(message.startswith("Cannot connect"))
        self.assertIn("1. Start mpd", message)
        self.assertIn("2. Check MPD_HOST", message)

    def test_format_log_message(self):
        """Test log message formatting."""
        error = MPDError("Broken", error_code=2003, context={'line': 'x'},
                         cause=ValueError("bad"))
        message = error.format_log_message()

        self.assertIn("[2003] MPDError: Broken", message)
        self.assertIn("Context:", message)
        self.assertIn("Caused by: bad", message)


class TestErrorSubclasses(unittest.TestCase):
    """Test the specialised error classes."""

    def test_connection_error(self):
        error = MPDConnectionError("refused", host="localhost", port=6600)
        self.assertEqual(error.error_code, 1001)
        self.assertEqual(error.context['category'], 'CONNECTION')
        self.assertEqual(error.context['host'], 'localhost')
        self.assertEqual(error.context['port'], 6600)
        self.assertIsInstance(error, MPDError)

    def test_protocol_error(self):
        error = ProtocolError("bad greeting", line="SSH-2.0",
                              error_code=ErrorCodes.HANDSHAKE_MISMATCH)
        self.assertEqual(error.error_code, 2004)
        self.assertEqual(error.context['line'], 'SSH-2.0')

    def test_command_error_carries_ack(self):
        ack = AckInfo.parse("[50@0] {add} No such file")
        error = CommandError("No such file", ack=ack)
        self.assertEqual(error.error_code, 2002)
        self.assertIs(error.ack, ack)
        self.assertEqual(error.context['ack_code'], 50)
        self.assertEqual(error.context['command'], 'add')

    def test_state_error(self):
        error = StateError("shut down", current_state='shutdown')
        self.assertEqual(error.error_code, 5004)
        self.assertEqual(error.context['state'], 'shutdown')

    def test_configuration_error(self):
        error = ConfigurationError("missing", setting_name='port')
        self.assertEqual(error.error_code, 6001)
        self.assertEqual(error.context['setting'], 'port')

    def test_validation_error(self):
        error = ValidationError("bad", field_name='commands')
        self.assertEqual(error.error_code, 7001)
        self.assertEqual(error.context['field'], 'commands')

    def test_explicit_code_overrides_default(self):
        error = StateError("x", error_code=ErrorCodes.SHUT_DOWN)
        self.assertEqual(error.error_code, ErrorCodes.SHUT_DOWN)


class TestWrapExternalError(unittest.TestCase):
    """Test wrapping of transport exceptions."""

    def test_wrap_uses_requested_class(self):
        original = ConnectionRefusedError(111, "Connection refused")
        error = wrap_external_error(original, "connect: (111) Connection refused",
                                    MPDConnectionError, host="localhost", port=6600)

        self.assertIsInstance(error, MPDConnectionError)
        self.assertIs(error.cause, original)
        self.assertEqual(error.context['host'], 'localhost')
        self.assertEqual(error.context['original_type'], 'ConnectionRefusedError')
        self.assertEqual(error.message, "connect: (111) Connection refused")

    def test_wrap_defaults_to_base_class(self):
        error = wrap_external_error(ValueError("x"), "wrapped")
        self.assertIs(type(error), MPDError)


if __name__ == '__main__':
    unittest.main()
