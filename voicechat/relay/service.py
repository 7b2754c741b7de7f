"""Transcription relay: PCM conversion, paced frame upload and transcript streaming."""

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Optional

from ..audio.pcm import float_to_pcm16, split_frames
from ..errors import InvalidInput, UpstreamFailure
from .recognizer import Recognizer, RecognizerSession

logger = logging.getLogger(__name__)


class RelayState(str, Enum):
    """Per-request lifecycle."""
    IDLE = "idle"
    CONVERTING = "converting"
    STREAMING = "streaming"
    CLOSED = "closed"


def parse_samples(payload: Any) -> list:
    """
    Extract the sample list from a request body.

    Raises:
        InvalidInput: body is not an object, or audioData is missing or not a list
    """
    if not isinstance(payload, dict):
        raise InvalidInput("Request body must be a JSON object")
    samples = payload.get("audioData")
    if not isinstance(samples, list):
        raise InvalidInput("audioData must be an array")
    return samples


class RelayStream:
    """One relay request.

    open() converts the samples and starts the recognizer session;
    fragments() then sends frames in the background while yielding
    transcripts as they arrive.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        samples: list,
        frame_bytes: int,
        frame_delay: float,
    ):
        self._recognizer = recognizer
        self._samples = samples
        self._frame_bytes = frame_bytes
        self._frame_delay = frame_delay

        self._session: Optional[RecognizerSession] = None
        self._frames: list[bytes] = []
        self.state = RelayState.IDLE
        self.frames_sent = 0

    async def open(self) -> None:
        """
        Convert samples to PCM frames and start the recognizer session.

        Raises:
            UpstreamFailure: conversion or session start failed
        """
        self.state = RelayState.CONVERTING
        try:
            audio = float_to_pcm16(self._samples)
        except (TypeError, ValueError) as e:
            self.state = RelayState.CLOSED
            raise UpstreamFailure(f"Could not convert audio data: {e}") from e

        self._frames = split_frames(audio, self._frame_bytes)
        logger.info(
            f"Converted audio data to buffer, size: {len(audio)} bytes "
            f"({len(self._frames)} frames)"
        )

        try:
            self._session = await self._recognizer.start_session()
        except BaseException:
            self.state = RelayState.CLOSED
            raise
        self.state = RelayState.STREAMING

    async def _send_frames(self) -> None:
        for frame in self._frames:
            await self._session.send_audio(frame)
            self.frames_sent += 1
            if self._frame_delay > 0:
                await asyncio.sleep(self._frame_delay)
        await self._session.end_audio()
        logger.debug(f"Sent {self.frames_sent} frames to recognizer")

    async def fragments(self) -> AsyncIterator[str]:
        """
        Yield transcript fragments in the order the recognizer emits them.

        Raises:
            UpstreamFailure: sending or receiving failed
        """
        if self.state is not RelayState.STREAMING:
            raise RuntimeError(f"Relay stream is {self.state.value}, not streaming")

        sender = asyncio.create_task(self._send_frames())
        transcripts = self._session.transcripts().__aiter__()
        receive: Optional[asyncio.Future] = None
        try:
            while True:
                receive = asyncio.ensure_future(transcripts.__anext__())
                if not sender.done():
                    await asyncio.wait({receive, sender}, return_when=asyncio.FIRST_COMPLETED)

                # A failed upload means the recognizer may never finish
                if sender.done() and not receive.done() and sender.exception() is not None:
                    receive.cancel()
                    try:
                        await receive
                    except (asyncio.CancelledError, StopAsyncIteration):
                        pass
                    await sender

                try:
                    text = await receive
                except StopAsyncIteration:
                    break
                yield text

            await sender
        finally:
            # Caller went away or failed: release the pending read and the upload
            if receive is not None and not receive.done():
                receive.cancel()
                try:
                    await receive
                except (asyncio.CancelledError, StopAsyncIteration):
                    pass
            if not sender.done():
                sender.cancel()
                try:
                    await sender
                except asyncio.CancelledError:
                    pass
            aclose = getattr(transcripts, "aclose", None)
            if aclose is not None:
                await aclose()
            self.state = RelayState.CLOSED
            logger.debug("Finished processing transcript stream")


class TranscriptionRelay:
    """Stateless relay between HTTP callers and a streaming recognizer.

    Every call to open() is independent; nothing is kept between requests.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        frame_bytes: int = 2048,
        frame_delay_ms: int = 20,
    ):
        self._recognizer = recognizer
        self.frame_bytes = frame_bytes
        self.frame_delay = frame_delay_ms / 1000.0

    async def open(self, samples: list) -> RelayStream:
        """Open a stream for one batch of samples. See RelayStream.open."""
        stream = RelayStream(self._recognizer, samples, self.frame_bytes, self.frame_delay)
        await stream.open()
        return stream
