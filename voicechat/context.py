"""Process-wide application context for the relay server."""

import logging
from typing import Optional

from .config import Config, resolve_credentials
from .relay.recognizer import Recognizer, TranscribeRecognizer
from .relay.service import TranscriptionRelay

logger = logging.getLogger(__name__)


class AppContext:
    """Holds the validated config and the components built from it.

    Constructed once at process start and handed to create_app(); nothing
    is looked up through module globals.
    """

    def __init__(self, config: Config, recognizer: Optional[Recognizer] = None):
        self.config = config
        self._recognizer = recognizer
        self._relay: Optional[TranscriptionRelay] = None
        self._started = False

    def start(self) -> None:
        """Validate config, resolve credentials and build the relay."""
        if self._started:
            logger.warning("Application context already started")
            return

        self.config.validate()

        if self._recognizer is None:
            credentials = resolve_credentials(self.config.recognizer)
            self._recognizer = TranscribeRecognizer(self.config.recognizer, credentials)

        self._relay = TranscriptionRelay(
            self._recognizer,
            frame_bytes=self.config.relay.frame_bytes,
            frame_delay_ms=self.config.relay.frame_delay_ms,
        )
        self._started = True
        logger.info("Application context started")

    def close(self) -> None:
        """Release components. Safe to call more than once."""
        if not self._started:
            return
        self._relay = None
        self._started = False
        logger.info("Application context closed")

    @property
    def started(self) -> bool:
        return self._started

    @property
    def relay(self) -> TranscriptionRelay:
        if self._relay is None:
            raise RuntimeError("Application context not started")
        return self._relay

    @property
    def recognizer(self) -> Optional[Recognizer]:
        return self._recognizer
