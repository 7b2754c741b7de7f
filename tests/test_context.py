"""Tests for the application context."""

from unittest.mock import patch

import pytest

from voicechat.config import AwsCredentials, Config, RecognizerConfig
from voicechat.context import AppContext
from voicechat.errors import ConfigError
from voicechat.relay.service import TranscriptionRelay


class TestAppContext:
    """Tests for AppContext."""

    def test_start_with_injected_recognizer(self, make_recognizer):
        """Test start builds the relay around an injected recognizer."""
        recognizer = make_recognizer()
        config = Config()
        config.relay.frame_bytes = 1024
        config.relay.frame_delay_ms = 5
        context = AppContext(config, recognizer=recognizer)

        context.start()

        assert context.started
        assert isinstance(context.relay, TranscriptionRelay)
        assert context.relay.frame_bytes == 1024
        assert context.relay.frame_delay == 0.005
        assert context.recognizer is recognizer

    @patch("voicechat.context.TranscribeRecognizer")
    @patch("voicechat.context.resolve_credentials")
    def test_start_builds_transcribe_recognizer(self, mock_resolve, mock_recognizer):
        """Test credentials are resolved once and passed to the recognizer."""
        credentials = AwsCredentials("AKIA", "secret")
        mock_resolve.return_value = credentials
        config = Config()
        context = AppContext(config)

        context.start()
        context.start()

        mock_resolve.assert_called_once_with(config.recognizer)
        mock_recognizer.assert_called_once_with(config.recognizer, credentials)
        assert context.recognizer is mock_recognizer.return_value

    def test_start_validates_config(self, make_recognizer):
        """Test invalid config fails at startup."""
        config = Config(recognizer=RecognizerConfig(language_code=""))
        context = AppContext(config, recognizer=make_recognizer())

        with pytest.raises(ConfigError):
            context.start()
        assert not context.started

    def test_relay_before_start(self, make_recognizer):
        """Test the relay is unavailable until start."""
        context = AppContext(Config(), recognizer=make_recognizer())

        with pytest.raises(RuntimeError):
            context.relay

    def test_close(self, make_recognizer):
        """Test close releases the relay and is idempotent."""
        context = AppContext(Config(), recognizer=make_recognizer())
        context.start()

        context.close()
        context.close()

        assert not context.started
        with pytest.raises(RuntimeError):
            context.relay
