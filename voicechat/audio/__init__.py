"""Client side of the dictation pipeline: microphone capture, chunking and relay client.

AudioCapture lives in .capture and is imported from there directly, since
it needs the PortAudio library at import time.
"""

from .client import RelayClient
from .pcm import float_to_pcm16, pcm16_to_float, split_frames, split_samples

__all__ = ["RelayClient", "float_to_pcm16", "pcm16_to_float", "split_frames", "split_samples"]
