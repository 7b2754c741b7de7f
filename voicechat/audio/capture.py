"""Microphone capture with silence filtering and timed flushes."""

import logging
import queue
import threading
import time
from typing import Callable, Optional

import numpy as np
import sounddevice as sd

from ..config import CaptureConfig
from ..errors import Aborted, DeviceUnavailable, VoiceChatError
from .client import RelayClient
from .pcm import is_silent, split_samples

logger = logging.getLogger(__name__)


class WorkerSession:
    """Chunk queue and cancellation tokens owned by one start()/stop() cycle.

    A worker left draining after stop() keeps its own session, so a restart
    never shares tokens or queued chunks with it.
    """

    def __init__(self):
        self.chunks: queue.Queue[Optional[np.ndarray]] = queue.Queue()
        self.lock = threading.Lock()
        # Set to abandon the rest of the chunk being delivered
        self.chunk_cancel: Optional[threading.Event] = None
        # Token of the request currently in flight
        self.request_cancel: Optional[threading.Event] = None

    def cancel_in_flight(self) -> None:
        """Cancel the request in flight and the pieces of its chunk not yet sent."""
        with self.lock:
            for token in (self.chunk_cancel, self.request_cancel):
                if token is not None:
                    token.set()


class AudioCapture:
    """Turns live microphone input into chunks and sends them for transcription.

    Frames arrive on the sounddevice callback thread and are handed to a
    processing thread, which drops silent frames, buffers voiced ones and
    flushes once flush_interval_ms has passed since the previous flush.
    Flushed chunks go through a single worker queue, so only one request is
    in flight at a time and fragments arrive in flush order.
    """

    def __init__(
        self,
        config: CaptureConfig,
        client: RelayClient,
        on_fragment: Callable[[str], None],
        on_error: Optional[Callable[[VoiceChatError], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.sample_rate = config.sample_rate
        self.frame_size = config.frame_size
        self.silence_threshold = config.silence_threshold
        self.flush_interval = config.flush_interval_ms / 1000.0

        self._client = client
        self._on_fragment = on_fragment
        self._on_error = on_error
        self._clock = clock

        self._frame_queue: queue.Queue[np.ndarray] = queue.Queue()
        self._session = WorkerSession()

        self._buffer: list[np.ndarray] = []
        self._buffer_lock = threading.Lock()
        self._last_flush = 0.0

        self._stream: Optional[sd.InputStream] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._worker: Optional[threading.Thread] = None

    # ==================== Device lifecycle ====================

    def _audio_callback(
        self,
        indata: np.ndarray,
        frames: int,
        time_info: dict,
        status: sd.CallbackFlags,
    ) -> None:
        """Queue one block of frame_size mono samples from PortAudio."""
        if status:
            # Usually input overflow: the processing thread fell behind
            logger.warning(f"Microphone stream status: {status}")

        self._frame_queue.put(indata[:, 0].astype(np.float32))

    def _process_loop(self) -> None:
        """Feed queued frames through the silence filter and buffer."""
        while self._running:
            try:
                frame = self._frame_queue.get(timeout=1.0)
            except queue.Empty:
                continue
            self.process_frame(frame)

    def start(self) -> None:
        """
        Open the microphone and start buffering.

        Raises:
            DeviceUnavailable: the input device could not be opened
        """
        if self._running:
            logger.warning("Audio capture already running")
            return

        logger.info(f"Starting audio capture: {self.sample_rate}Hz, mono")

        device = None
        if self.config.device != "default":
            try:
                device = int(self.config.device)
            except ValueError:
                device = self.config.device

        stream = None
        try:
            stream = sd.InputStream(
                device=device,
                samplerate=self.sample_rate,
                channels=1,
                dtype=np.float32,
                blocksize=self.frame_size,
                callback=self._audio_callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            logger.error(f"Error accessing microphone: {e}")
            if stream is not None:
                stream.close()
            raise DeviceUnavailable(f"Microphone unavailable: {e}") from e

        self._stream = stream
        self._running = True
        self._last_flush = self._clock()

        self._thread = threading.Thread(target=self._process_loop, daemon=True)
        self._thread.start()

        self._session = WorkerSession()
        self._worker = threading.Thread(
            target=self._transcription_loop, args=(self._session,), daemon=True
        )
        self._worker.start()

        logger.info("Audio capture started")

    def stop(self) -> None:
        """
        Stop capture.

        Cancels the request in flight along with the rest of its chunk, hands
        any remaining buffered audio to the worker as a final chunk and
        releases the device. The worker exits once the final chunk has been
        delivered. No-op when already stopped.
        """
        if not self._running:
            return

        logger.info("Stopping audio capture")
        self._running = False

        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

        while True:
            try:
                frame = self._frame_queue.get_nowait()
            except queue.Empty:
                break
            if not is_silent(frame, self.silence_threshold):
                self._append(frame)

        session = self._session
        session.cancel_in_flight()
        self.flush()
        session.chunks.put(None)
        self._worker = None

        with self._buffer_lock:
            self._buffer = []
            self._last_flush = 0.0

        logger.info("Audio capture stopped")

    def is_running(self) -> bool:
        """Check if capture is running."""
        return self._running

    # ==================== Buffering ====================

    def process_frame(self, frame: np.ndarray) -> bool:
        """
        Handle one frame from the microphone.

        Returns:
            True if the frame was buffered, False if it was dropped as silence
        """
        if is_silent(frame, self.silence_threshold):
            return False

        self._append(frame)

        with self._buffer_lock:
            due = self._clock() - self._last_flush >= self.flush_interval
        if due:
            self.flush()
        return True

    def _append(self, frame: np.ndarray) -> None:
        with self._buffer_lock:
            self._buffer.append(np.asarray(frame, dtype=np.float32).copy())

    def flush(self) -> Optional[np.ndarray]:
        """Concatenate buffered frames into one chunk and queue it for transcription."""
        with self._buffer_lock:
            self._last_flush = self._clock()
            if not self._buffer:
                return None
            chunk = np.concatenate(self._buffer)
            self._buffer = []

        logger.debug(f"Flushing {len(chunk)} samples")
        self._session.chunks.put(chunk)
        return chunk

    @property
    def buffered_samples(self) -> int:
        """Number of samples waiting for the next flush."""
        with self._buffer_lock:
            return sum(len(frame) for frame in self._buffer)

    # ==================== Transcription ====================

    def _transcription_loop(self, session: WorkerSession) -> None:
        """Send queued chunks one at a time until the stop sentinel arrives."""
        while True:
            chunk = session.chunks.get()
            if chunk is None:
                break
            self.deliver(chunk, session)

    def deliver(self, chunk: np.ndarray, session: Optional[WorkerSession] = None) -> None:
        """Send a chunk to the relay as sequential one-second requests."""
        if session is None:
            session = self._session

        chunk_cancel = threading.Event()
        with session.lock:
            session.chunk_cancel = chunk_cancel

        try:
            for piece in split_samples(chunk, self.config.request_chunk_samples):
                cancel = threading.Event()
                with session.lock:
                    if chunk_cancel.is_set():
                        logger.info("Chunk cancelled, skipping remaining requests")
                        return
                    session.request_cancel = cancel

                try:
                    self._client.transcribe(piece, self._emit, cancel)
                except Aborted:
                    logger.info("Request was aborted")
                    return
                except VoiceChatError as e:
                    logger.error(f"Transcription error: {e}")
                    self._report(e)
                    return
                finally:
                    with session.lock:
                        session.request_cancel = None
        finally:
            with session.lock:
                session.chunk_cancel = None

    def _emit(self, text: str) -> None:
        try:
            self._on_fragment(text)
        except Exception as e:
            logger.error(f"Fragment callback error: {e}")

    def _report(self, error: VoiceChatError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception as e:
            logger.error(f"Error callback error: {e}")

    @staticmethod
    def list_devices() -> list[dict]:
        """Input-capable devices as id/name/channels/sample_rate dicts, for --list-audio."""
        return [
            {
                "id": index,
                "name": info["name"],
                "channels": info["max_input_channels"],
                "sample_rate": info["default_samplerate"],
            }
            for index, info in enumerate(sd.query_devices())
            if info["max_input_channels"] > 0
        ]
