"""Streaming speech recognizer sessions."""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from amazon_transcribe.auth import StaticCredentialResolver
from amazon_transcribe.client import TranscribeStreamingClient
from amazon_transcribe.model import TranscriptEvent

from ..config import AwsCredentials, RecognizerConfig
from ..errors import UpstreamFailure

logger = logging.getLogger(__name__)


class RecognizerSession(ABC):
    """One live recognition stream: audio goes in, transcript text comes out."""

    @abstractmethod
    async def send_audio(self, frame: bytes) -> None:
        """Send one PCM frame."""

    @abstractmethod
    async def end_audio(self) -> None:
        """Signal that no more audio will be sent."""

    @abstractmethod
    def transcripts(self) -> AsyncIterator[str]:
        """Yield non-empty transcript text as the recognizer emits it."""


class Recognizer(ABC):
    """Factory for recognizer sessions."""

    @abstractmethod
    async def start_session(self) -> RecognizerSession:
        """Open a new streaming session."""


class TranscribeSession(RecognizerSession):
    """Session backed by an AWS Transcribe streaming call."""

    def __init__(self, stream):
        self._stream = stream

    async def send_audio(self, frame: bytes) -> None:
        try:
            await self._stream.input_stream.send_audio_event(audio_chunk=frame)
        except Exception as e:
            raise UpstreamFailure(f"Failed to send audio: {e}") from e

    async def end_audio(self) -> None:
        try:
            await self._stream.input_stream.end_stream()
        except Exception as e:
            raise UpstreamFailure(f"Failed to end audio stream: {e}") from e

    async def transcripts(self) -> AsyncIterator[str]:
        try:
            async for event in self._stream.output_stream:
                text = self._first_transcript(event)
                if text:
                    yield text
        except UpstreamFailure:
            raise
        except Exception as e:
            raise UpstreamFailure(f"Transcript stream failed: {e}") from e

    @staticmethod
    def _first_transcript(event) -> Optional[str]:
        """Text of the first alternative of the first result, partial or final."""
        if not isinstance(event, TranscriptEvent):
            return None
        results = event.transcript.results
        if not results:
            return None
        alternatives = results[0].alternatives
        if not alternatives:
            return None
        return alternatives[0].transcript or None


class TranscribeRecognizer(Recognizer):
    """AWS Transcribe streaming recognizer.

    The client is built once with credentials resolved at startup; each
    request opens its own stream.
    """

    def __init__(self, config: RecognizerConfig, credentials: Optional[AwsCredentials] = None):
        self.config = config

        resolver = None
        if credentials is not None:
            resolver = StaticCredentialResolver(
                access_key_id=credentials.access_key_id,
                secret_access_key=credentials.secret_access_key,
                session_token=credentials.session_token,
            )
        self._client = TranscribeStreamingClient(
            region=config.region,
            credential_resolver=resolver,
        )
        logger.info(
            f"Transcribe recognizer ready: region={config.region}, "
            f"language={config.language_code}, {config.sample_rate}Hz"
        )

    async def start_session(self) -> RecognizerSession:
        logger.debug("Sending request to AWS Transcribe")
        try:
            stream = await self._client.start_stream_transcription(
                language_code=self.config.language_code,
                media_sample_rate_hz=self.config.sample_rate,
                media_encoding=self.config.media_encoding,
            )
        except Exception as e:
            raise UpstreamFailure(f"Could not start transcription stream: {e}") from e

        if getattr(stream, "output_stream", None) is None:
            logger.error("No transcript stream available in response")
            raise UpstreamFailure("No transcript stream available")
        return TranscribeSession(stream)
