"""Command-line entry point: run the relay server or dictate from the microphone."""

import argparse
import logging
import signal
import sys
import threading
from typing import Optional, TextIO

import uvicorn

from .audio.client import RelayClient
from .config import Config, load_config
from .context import AppContext
from .errors import ConfigError, DeviceUnavailable, VoiceChatError
from .web.api import create_app

logger = logging.getLogger(__name__)


class Dictation:
    """Microphone dictation session printing transcript fragments as they arrive."""

    def __init__(self, config: Config, out: TextIO = sys.stdout):
        # Server hosts never need PortAudio, so capture is imported here.
        from .audio.capture import AudioCapture

        self.config = config
        self._out = out
        self._lock = threading.Lock()
        self.fragments: list[str] = []
        self.errors: list[VoiceChatError] = []

        self.client = RelayClient(
            config.capture.relay_url,
            timeout=config.capture.request_timeout,
        )
        self.capture = AudioCapture(
            config.capture,
            self.client,
            on_fragment=self._on_fragment,
            on_error=self._on_error,
        )

    def _on_fragment(self, text: str) -> None:
        with self._lock:
            self.fragments.append(text)
            self._out.write(text + "\n")
            self._out.flush()

    def _on_error(self, error: VoiceChatError) -> None:
        with self._lock:
            self.errors.append(error)
        logger.error(f"Transcription failed: {error}")

    @property
    def transcript(self) -> str:
        """Fragments joined in arrival order, as the compose box would show them."""
        with self._lock:
            return " ".join(self.fragments)

    def start(self) -> None:
        self.capture.start()

    def stop(self) -> None:
        self.capture.stop()
        self.client.close()


def serve(config: Config, host: Optional[str] = None, port: Optional[int] = None) -> int:
    """Run the relay server in the foreground until interrupted."""
    context = AppContext(config)
    try:
        context.start()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    host = host or config.relay.host
    port = port or config.relay.port
    app = create_app(context)

    logger.info(f"Relay running on http://{host}:{port}")
    logger.info(f"CORS enabled for {', '.join(config.relay.cors_origins)}")
    try:
        uvicorn.run(app, host=host, port=port, log_level="warning", access_log=False)
    finally:
        context.close()
    return 0


def dictate(
    config: Config,
    relay_url: Optional[str] = None,
    shutdown: Optional[threading.Event] = None,
) -> int:
    """Capture from the microphone and print fragments until interrupted."""
    if relay_url:
        config.capture.relay_url = relay_url
    try:
        config.validate()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    session = Dictation(config)
    if shutdown is None:
        shutdown = threading.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}")
        shutdown.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        session.start()
    except DeviceUnavailable as e:
        logger.error(str(e))
        session.client.close()
        return 1

    logger.info(f"Listening, sending audio to {config.capture.relay_url} (Ctrl-C to stop)")
    try:
        while not shutdown.is_set():
            shutdown.wait(1.0)
    finally:
        session.stop()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="voicechat - chat demo dictation pipeline")
    parser.add_argument(
        "command",
        nargs="?",
        choices=["serve", "dictate"],
        default="serve",
        help="Run the transcription relay (serve) or dictate from the microphone",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (default: config/settings.yaml)",
    )
    parser.add_argument("--host", default=None, help="Relay bind address")
    parser.add_argument("-p", "--port", type=int, default=None, help="Relay port")
    parser.add_argument("--relay-url", default=None, help="Relay URL for dictation")
    parser.add_argument(
        "--list-audio",
        action="store_true",
        help="List available audio devices",
    )
    args = parser.parse_args(argv)

    if args.list_audio:
        from .audio.capture import AudioCapture

        print("Available audio devices:")
        for dev in AudioCapture.list_devices():
            print(f"  [{dev['id']}] {dev['name']} ({dev['channels']}ch)")
        return 0

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    config.setup_logging()

    if args.command == "dictate":
        return dictate(config, relay_url=args.relay_url)
    return serve(config, host=args.host, port=args.port)


if __name__ == "__main__":
    sys.exit(main())
