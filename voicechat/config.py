"""Configuration management for voicechat."""

import configparser
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class CaptureConfig:
    """Microphone capture and client-side chunking configuration."""
    device: str = "default"
    sample_rate: int = 16000
    channels: int = 1
    frame_size: int = 4096
    silence_threshold: float = 0.01
    flush_interval_ms: int = 3000
    request_chunk_samples: int = 16000  # 1 second at 16kHz
    relay_url: str = "http://localhost:3001"
    request_timeout: float = 30.0


@dataclass
class RecognizerConfig:
    """Streaming speech recognizer (AWS Transcribe) configuration."""
    region: str = "us-east-1"
    language_code: str = "en-US"
    media_encoding: str = "pcm"
    sample_rate: int = 16000
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    credentials_file: Optional[str] = "~/.aws/credentials"
    profile: str = "default"


@dataclass
class RelayConfig:
    """Transcription relay server configuration."""
    host: str = "127.0.0.1"
    port: int = 3001
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    frame_bytes: int = 2048
    frame_delay_ms: int = 20


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class AwsCredentials:
    """Static credentials resolved once at startup."""
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None


@dataclass
class Config:
    """Main configuration container."""
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    recognizer: RecognizerConfig = field(default_factory=RecognizerConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        try:
            return cls(
                capture=CaptureConfig(**data.get("capture", {})),
                recognizer=RecognizerConfig(**data.get("recognizer", {})),
                relay=RelayConfig(**data.get("relay", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "capture": asdict(self.capture),
            "recognizer": asdict(self.recognizer),
            "relay": asdict(self.relay),
            "logging": asdict(self.logging),
        }

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def validate(self) -> None:
        """Check value ranges. Raises ConfigError on the first problem found."""
        capture = self.capture
        if capture.sample_rate <= 0:
            raise ConfigError("capture.sample_rate must be positive")
        if capture.channels != 1:
            raise ConfigError("capture.channels must be 1 (mono)")
        if capture.frame_size <= 0:
            raise ConfigError("capture.frame_size must be positive")
        if not 0.0 <= capture.silence_threshold < 1.0:
            raise ConfigError("capture.silence_threshold must be in [0, 1)")
        if capture.flush_interval_ms <= 0:
            raise ConfigError("capture.flush_interval_ms must be positive")
        if capture.request_chunk_samples <= 0:
            raise ConfigError("capture.request_chunk_samples must be positive")

        recognizer = self.recognizer
        if not recognizer.language_code:
            raise ConfigError("recognizer.language_code must not be empty")
        if recognizer.sample_rate <= 0:
            raise ConfigError("recognizer.sample_rate must be positive")
        if bool(recognizer.access_key_id) != bool(recognizer.secret_access_key):
            raise ConfigError(
                "recognizer.access_key_id and recognizer.secret_access_key must be set together"
            )

        relay = self.relay
        if relay.frame_bytes <= 0 or relay.frame_bytes % 2:
            raise ConfigError("relay.frame_bytes must be a positive even number")
        if relay.frame_delay_ms < 0:
            raise ConfigError("relay.frame_delay_ms must not be negative")

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        log_level = getattr(logging, self.logging.level.upper(), logging.INFO)

        handlers = [logging.StreamHandler()]

        if self.logging.file:
            log_path = Path(self.logging.file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_path))

        logging.basicConfig(
            level=log_level,
            format=self.logging.format,
            handlers=handlers,
        )


def resolve_credentials(config: RecognizerConfig) -> Optional[AwsCredentials]:
    """
    Resolve recognizer credentials once.

    Explicit keys in the config win. Otherwise the configured profile is read
    from the INI credentials file. Returns None when neither is available, in
    which case the recognizer client falls back to its default provider chain.
    """
    if config.access_key_id and config.secret_access_key:
        return AwsCredentials(
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            session_token=config.session_token,
        )

    if not config.credentials_file:
        return None

    path = Path(config.credentials_file).expanduser()
    if not path.exists():
        logger.warning(f"Credentials file not found: {path}")
        return None

    parser = configparser.ConfigParser()
    try:
        parser.read(path)
    except configparser.Error as e:
        raise ConfigError(f"Could not parse credentials file {path}: {e}") from e

    if not parser.has_section(config.profile):
        logger.error(f"Could not find [{config.profile}] profile in {path}")
        return None

    section = parser[config.profile]
    access_key = section.get("aws_access_key_id")
    secret_key = section.get("aws_secret_access_key")
    if not access_key or not secret_key:
        raise ConfigError(f"Profile [{config.profile}] in {path} is missing keys")

    logger.info(f"Loaded credentials for profile [{config.profile}] from {path}")
    return AwsCredentials(
        access_key_id=access_key,
        secret_access_key=secret_key,
        session_token=section.get("aws_session_token"),
    )


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from file or environment."""
    if path is None:
        path = os.environ.get("VOICECHAT_CONFIG", "config/settings.yaml")
    config = Config.from_yaml(path)

    region = os.environ.get("AWS_REGION")
    if region:
        config.recognizer.region = region

    return config
