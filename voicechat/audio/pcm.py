"""Float/PCM conversion and framing helpers."""

from typing import Sequence, Union

import numpy as np

PCM_SCALE = 32767
PCM_DTYPE = np.dtype("<i2")

Samples = Union[np.ndarray, Sequence[float]]


def float_to_pcm16(samples: Samples) -> bytes:
    """
    Convert float samples to 16-bit signed little-endian PCM.

    Values are clamped to [-1, 1] before scaling, so the int16 range is
    never exceeded.
    """
    audio = np.asarray(samples, dtype=np.float64)
    if audio.size == 0:
        return b""
    audio = np.nan_to_num(audio, nan=0.0)
    scaled = np.round(np.clip(audio, -1.0, 1.0) * PCM_SCALE)
    return scaled.astype(PCM_DTYPE).tobytes()


def pcm16_to_float(data: bytes) -> np.ndarray:
    """Decode little-endian 16-bit PCM back to float32 samples."""
    return (np.frombuffer(data, dtype=PCM_DTYPE).astype(np.float32)) / PCM_SCALE


def split_frames(data: bytes, frame_bytes: int = 2048) -> list[bytes]:
    """Slice a PCM buffer into fixed-size network frames; the last may be shorter."""
    if frame_bytes <= 0:
        raise ValueError("frame_bytes must be positive")
    return [data[i:i + frame_bytes] for i in range(0, len(data), frame_bytes)]


def split_samples(samples: np.ndarray, chunk_samples: int = 16000) -> list[np.ndarray]:
    """Slice a flushed chunk into per-request pieces; the last may be shorter."""
    if chunk_samples <= 0:
        raise ValueError("chunk_samples must be positive")
    return [samples[i:i + chunk_samples] for i in range(0, len(samples), chunk_samples)]


def is_silent(frame: np.ndarray, threshold: float) -> bool:
    """True when no sample's magnitude exceeds the threshold."""
    if len(frame) == 0:
        return True
    return not bool(np.any(np.abs(frame) > threshold))
