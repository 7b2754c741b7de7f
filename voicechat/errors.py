"""Error types shared by the capture and relay sides."""


class VoiceChatError(Exception):
    """Base class for voicechat errors."""


class ConfigError(VoiceChatError):
    """Configuration is missing or invalid."""


class DeviceUnavailable(VoiceChatError):
    """Microphone could not be opened (permission denied or no device)."""


class InvalidInput(VoiceChatError):
    """Transcription request body is malformed."""


class UpstreamFailure(VoiceChatError):
    """Recognizer or relay failed, or returned no result stream."""


class Aborted(VoiceChatError):
    """Request was cancelled on the client side."""
