"""HTTP client for the transcription relay."""

import logging
import queue
import threading
from typing import Callable, Optional

import httpx
import numpy as np

from ..errors import Aborted, UpstreamFailure

logger = logging.getLogger(__name__)

TRANSCRIBE_PATH = "/api/transcribe"

# Marks the end of a response body on the line queue
_END = object()


class _PendingRequest:
    """One streaming POST, read line by line on a background thread.

    Lines, the end marker and any error are handed to the caller through
    a queue so the caller can give up on cancellation without waiting for
    the next line.
    """

    def __init__(self, client: httpx.Client, payload: dict):
        self._client = client
        self._payload = payload
        self.lines: queue.Queue = queue.Queue()
        self._response: Optional[httpx.Response] = None
        self._closed = False
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._read, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _read(self) -> None:
        try:
            with self._client.stream("POST", TRANSCRIBE_PATH, json=self._payload) as response:
                with self._lock:
                    if self._closed:
                        return
                    self._response = response

                if response.status_code >= 400:
                    response.read()
                    raise UpstreamFailure(
                        f"Transcription request failed ({response.status_code}): "
                        f"{RelayClient._error_message(response)}"
                    )

                for line in response.iter_lines():
                    if self._closed:
                        return
                    self.lines.put(line)
            self.lines.put(_END)
        except Exception as e:
            # Raised again on the caller's thread
            self.lines.put(e)

    def close(self) -> None:
        """Drop the connection, interrupting a read that is still waiting."""
        with self._lock:
            self._closed = True
            response = self._response
        if response is not None and not response.is_closed:
            try:
                response.close()
            except (httpx.HTTPError, RuntimeError) as e:
                logger.debug(f"Error closing cancelled response: {e}")


class RelayClient:
    """Sends sample batches to the relay and reads back streamed transcripts.

    Uses a single httpx.Client. Each call to transcribe() is one in-flight
    request; the caller owns the cancellation event for it.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        poll_interval: float = 0.05,
    ):
        self.base_url = base_url
        self.poll_interval = poll_interval
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    def transcribe(
        self,
        samples: np.ndarray,
        on_fragment: Callable[[str], None],
        cancel: Optional[threading.Event] = None,
    ) -> int:
        """
        Send one batch of samples and deliver each transcript line.

        Args:
            samples: Float samples in [-1, 1]
            on_fragment: Called once per non-blank line, in receipt order
            cancel: When set, the open response is closed and Aborted raised,
                even while the relay has not sent the next line yet

        Returns:
            Number of fragments delivered

        Raises:
            Aborted: cancel was set
            UpstreamFailure: relay returned an error status or the connection failed
        """
        if cancel is not None and cancel.is_set():
            raise Aborted("Request cancelled before sending")

        payload = {"audioData": np.asarray(samples, dtype=np.float32).tolist()}
        request = _PendingRequest(self._client, payload)
        request.start()
        delivered = 0

        try:
            while True:
                try:
                    item = request.lines.get(timeout=self.poll_interval)
                except queue.Empty:
                    if cancel is not None and cancel.is_set():
                        raise Aborted("Request cancelled")
                    continue

                if cancel is not None and cancel.is_set():
                    raise Aborted("Request cancelled")
                if item is _END:
                    return delivered
                if isinstance(item, httpx.HTTPError):
                    raise UpstreamFailure(f"Relay connection failed: {item}") from item
                if isinstance(item, Exception):
                    raise item
                if not item.strip():
                    continue

                logger.debug(f"Received transcription chunk: {item!r}")
                on_fragment(item)
                delivered += 1
        finally:
            request.close()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return str(response.json().get("error", "unknown error"))
        except ValueError:
            return response.text or "unknown error"

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> "RelayClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
