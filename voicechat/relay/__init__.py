"""Server side of the dictation pipeline: recognizer sessions and the transcription relay."""

from .recognizer import Recognizer, RecognizerSession, TranscribeRecognizer
from .service import RelayState, RelayStream, TranscriptionRelay, parse_samples

__all__ = [
    "Recognizer",
    "RecognizerSession",
    "TranscribeRecognizer",
    "RelayState",
    "RelayStream",
    "TranscriptionRelay",
    "parse_samples",
]
