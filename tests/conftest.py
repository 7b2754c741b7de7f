"""Pytest configuration and shared fixtures."""

import asyncio
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest

from voicechat.errors import UpstreamFailure
from voicechat.relay.recognizer import Recognizer, RecognizerSession


# ==================== Path Fixtures ====================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir):
    """Create a temporary config file."""
    config_path = temp_dir / "settings.yaml"
    config_content = """
capture:
  device: "default"
  sample_rate: 16000
  frame_size: 4096
  silence_threshold: 0.02
  flush_interval_ms: 2000
  relay_url: "http://relay.test"

recognizer:
  region: "eu-west-1"
  language_code: "en-GB"
  credentials_file: null

relay:
  port: 4000
  frame_bytes: 1024
  frame_delay_ms: 0

logging:
  level: "DEBUG"
  file: null
"""
    config_path.write_text(config_content)
    return config_path


# ==================== Audio Fixtures ====================

@pytest.fixture
def voiced_frame():
    """One 4096-sample frame with speech-like amplitude."""
    rng = np.random.default_rng(7)
    return (rng.standard_normal(4096) * 0.1).astype(np.float32)


@pytest.fixture
def silent_frame():
    """One 4096-sample frame below the default silence threshold."""
    return np.full(4096, 0.005, dtype=np.float32)


@pytest.fixture
def capture_config():
    """Capture config with default thresholds."""
    from voicechat.config import CaptureConfig
    return CaptureConfig(
        sample_rate=16000,
        frame_size=4096,
        silence_threshold=0.01,
        flush_interval_ms=3000,
        request_chunk_samples=16000,
        relay_url="http://relay.test",
    )


@pytest.fixture
def mock_relay_client():
    """Create a mock RelayClient."""
    client = MagicMock()
    client.transcribe.return_value = 0
    return client


# ==================== Recognizer Fixtures ====================

class FakeSession(RecognizerSession):
    """Recognizer session that replays fixed fragments.

    The transcript stream ends only after end_audio(), like a real service.
    With hold_open it never ends, like a service that is still thinking.
    """

    def __init__(self, fragments, fail_on_send=False, fail_after=None, hold_open=False):
        self.fragments = list(fragments)
        self.fail_on_send = fail_on_send
        self.fail_after = fail_after
        self.hold_open = hold_open
        self.sent: list[bytes] = []
        self.ended = asyncio.Event()
        self.closed = False

    async def send_audio(self, frame: bytes) -> None:
        if self.fail_on_send:
            raise UpstreamFailure("send failed")
        self.sent.append(frame)

    async def end_audio(self) -> None:
        if not self.hold_open:
            self.ended.set()

    async def transcripts(self):
        try:
            for i, text in enumerate(self.fragments):
                if self.fail_after is not None and i >= self.fail_after:
                    raise UpstreamFailure("stream dropped")
                yield text
                await asyncio.sleep(0)
            await self.ended.wait()
        finally:
            self.closed = True


class FakeRecognizer(Recognizer):
    """Recognizer handing out FakeSessions and recording them."""

    def __init__(self, fragments=(), fail_on_start=False, **session_kwargs):
        self.fragments = list(fragments)
        self.fail_on_start = fail_on_start
        self.session_kwargs = session_kwargs
        self.sessions: list[FakeSession] = []

    async def start_session(self) -> RecognizerSession:
        if self.fail_on_start:
            raise UpstreamFailure("service unavailable")
        session = FakeSession(self.fragments, **self.session_kwargs)
        self.sessions.append(session)
        return session


@pytest.fixture
def make_recognizer():
    """Factory for fake recognizers."""
    return FakeRecognizer
