import logging
import os
import struct
from enum import IntEnum
from typing import BinaryIO, Optional, Union

import numpy as np

logger = logging.getLogger(__name__)

HEADER_SIZE = 44
DEFAULT_SAMPLE_RATE = 44100
PCM_FORMAT = 1

# Full-scale positive value per sample width; the negative side stops at -max.
MAX_16BIT = 0x7fff
MAX_24BIT = 0x7fffff

PathType = Union[str, os.PathLike]


class BitDepth(IntEnum):
    """Sample width in bytes."""
    WAV_16BIT = 2
    WAV_24BIT = 3

    @classmethod
    def coerce(cls, value) -> "BitDepth":
        # Accept either bits (16/24) or bytes (2/3)
        if value in (16, 24):
            value //= 8
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unsupported bit depth: {value!r} (use 16 or 24)") from None


class Channels(IntEnum):
    WAV_MONO = 1
    WAV_STEREO = 2

    @classmethod
    def coerce(cls, value) -> "Channels":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unsupported channel count: {value!r} (use 1 or 2)") from None


def _u32(value: int, field: str) -> int:
    if value > 0xFFFFFFFF:
        logger.warning(f"WAV header field '{field}' overflows 32 bits ({value}), wrapping")
    return value & 0xFFFFFFFF


def build_header(bit_depth: BitDepth, channels: Channels, sample_rate: int, data_size: int) -> bytes:
    """Return the 44-byte RIFF/WAVE header for a PCM payload of ``data_size`` bytes.

    Fields are packed as fixed-width little-endian integers; anything that does
    not fit wraps instead of raising, the same as an unsigned counter would.
    """
    bytes_per_sample = int(bit_depth)
    n_channels = int(channels)
    byte_rate = sample_rate * n_channels * bytes_per_sample
    block_align = n_channels * bytes_per_sample

    return b''.join([
        b'RIFF',
        struct.pack('<I', _u32(36 + data_size, 'chunk size')),
        b'WAVE',
        b'fmt ',
        struct.pack('<I', 16),  # Subchunk1Size
        struct.pack('<H', PCM_FORMAT),
        struct.pack('<H', n_channels & 0xFFFF),
        struct.pack('<I', _u32(sample_rate, 'sample rate')),
        struct.pack('<I', _u32(byte_rate, 'byte rate')),
        struct.pack('<H', block_align & 0xFFFF),
        struct.pack('<H', (bytes_per_sample * 8) & 0xFFFF),
        b'data',
        struct.pack('<I', _u32(data_size, 'data size')),
    ])


def _is_float(sample) -> bool:
    return isinstance(sample, (float, np.floating))


def _scale(values, full_scale: int) -> np.ndarray:
    # Truncates toward zero; NaN and inf cast to whatever numpy produces
    with np.errstate(invalid='ignore', over='ignore'):
        return (np.asarray(values, dtype=np.float64) * full_scale).astype(np.int64)


class WavFile:
    """Streaming PCM WAV writer.

    Samples are appended to the file as they arrive; 44 bytes are reserved at
    the start and the real header is written over them on ``close()``. The
    writer closes itself when used as a context manager or when it is garbage
    collected while still open.

    Open failures are not raised: check ``bool(writer)`` after opening.

    Float samples are expected in [-1.0, 1.0] and are neither clamped nor
    validated; out-of-range values wrap. Changing ``bit_depth`` or
    ``channels`` while a file is open makes the header disagree with the
    samples already written.
    """

    def __init__(self, path: Optional[PathType] = None,
                 bit_depth: Union[BitDepth, int] = BitDepth.WAV_16BIT,
                 channels: Union[Channels, int] = Channels.WAV_MONO,
                 sample_rate: int = DEFAULT_SAMPLE_RATE):
        self._file: Optional[BinaryIO] = None
        self._path: Optional[PathType] = None
        self._bit_depth = BitDepth.WAV_16BIT
        self._channels = Channels.WAV_MONO
        self._sample_rate = 0
        self._data_size = 0
        if path is not None:
            self.open(path, bit_depth, channels, sample_rate)

    def __enter__(self) -> "WavFile":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self):
        if getattr(self, '_file', None) is not None:
            self.close()

    def __bool__(self) -> bool:
        return self.is_open

    @property
    def is_open(self) -> bool:
        return self._file is not None and not self._file.closed

    @property
    def path(self) -> Optional[PathType]:
        return self._path

    @property
    def data_size(self) -> int:
        """Payload bytes written since the last ``open()``."""
        return self._data_size

    @property
    def bit_depth(self) -> BitDepth:
        return self._bit_depth

    @bit_depth.setter
    def bit_depth(self, value: Union[BitDepth, int]) -> None:
        self._bit_depth = BitDepth.coerce(value)

    @property
    def channels(self) -> Channels:
        return self._channels

    @channels.setter
    def channels(self, value: Union[Channels, int]) -> None:
        self._channels = Channels.coerce(value)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @sample_rate.setter
    def sample_rate(self, value: int) -> None:
        self._sample_rate = int(value)

    def open(self, path: PathType,
             bit_depth: Union[BitDepth, int] = BitDepth.WAV_16BIT,
             channels: Union[Channels, int] = Channels.WAV_MONO,
             sample_rate: int = DEFAULT_SAMPLE_RATE) -> None:
        if self.is_open:
            self.close()

        self.bit_depth = bit_depth
        self.channels = channels
        self.sample_rate = sample_rate
        self._data_size = 0
        self._path = path

        try:
            self._file = open(path, "wb")
            # Placeholder header, patched with the real sizes on close()
            self._file.write(build_header(self._bit_depth, self._channels, self._sample_rate, 0))
        except (OSError, ValueError) as e:
            # ValueError: paths the OS cannot represent, e.g. embedded NUL
            logger.error(f"Could not open WAV file {path}: {e}")
            if self._file is not None:
                self._file.close()
            self._file = None
            return

        logger.info(f"Opened WAV file: {path} ({self._bit_depth * 8}-bit, "
                    f"{int(self._channels)} ch, {self._sample_rate} Hz)")

    def close(self) -> None:
        if not self.is_open:
            return

        header = build_header(self._bit_depth, self._channels, self._sample_rate, self._data_size)
        try:
            self._file.seek(0)
            self._file.write(header)
        finally:
            self._file.close()
            self._file = None
        logger.info(f"Closed WAV file: {self._path} ({self._data_size} bytes of audio)")

    def _write(self, data: bytes) -> None:
        if not self.is_open:
            return
        self._file.write(data)
        self._data_size += len(data)

    # 16-bit

    def write_mono_16bit(self, sample: Union[int, float]) -> None:
        if _is_float(sample):
            sample = int(_scale(sample, MAX_16BIT))
        self._write((int(sample) & 0xFFFF).to_bytes(2, 'little'))

    def write_stereo_16bit(self, sample_left: Union[int, float], sample_right: Union[int, float]) -> None:
        self.write_mono_16bit(sample_left)
        self.write_mono_16bit(sample_right)

    # 24-bit

    def write_mono_24bit(self, sample: Union[int, float]) -> None:
        if _is_float(sample):
            sample = int(_scale(sample, MAX_24BIT))
        # Low three bytes only; the top byte of a 32-bit value is dropped
        self._write((int(sample) & 0xFFFFFF).to_bytes(3, 'little'))

    def write_stereo_24bit(self, sample_left: Union[int, float], sample_right: Union[int, float]) -> None:
        self.write_mono_24bit(sample_left)
        self.write_mono_24bit(sample_right)

    # Width taken from the current bit depth

    def write_sample(self, sample: Union[int, float]) -> None:
        if self._bit_depth == BitDepth.WAV_24BIT:
            self.write_mono_24bit(sample)
        else:
            self.write_mono_16bit(sample)

    def write_stereo(self, sample_left: Union[int, float], sample_right: Union[int, float]) -> None:
        self.write_sample(sample_left)
        self.write_sample(sample_right)

    def write_frames(self, frames: np.ndarray) -> None:
        """Write a block of frames in one call.

        ``frames`` is 1-D for mono or shaped ``(n, 2)`` for stereo. Float arrays
        are scaled and truncated exactly like ``write_sample(float)``, NaN and
        inf included; integer arrays are stored as-is, wrapped to the sample
        width.
        """
        frames = np.asarray(frames)
        expected = 1 if frames.ndim == 1 else frames.shape[-1] if frames.ndim == 2 else None
        if expected != int(self._channels):
            raise ValueError(f"frames of shape {frames.shape} do not match "
                             f"{int(self._channels)}-channel output")

        if np.issubdtype(frames.dtype, np.floating):
            full_scale = MAX_24BIT if self._bit_depth == BitDepth.WAV_24BIT else MAX_16BIT
            values = _scale(frames, full_scale)
        else:
            values = frames.astype(np.int64)
        values = values.reshape(-1)

        if self._bit_depth == BitDepth.WAV_24BIT:
            self._write(_pack_24bit(values))
        else:
            self._write((values & 0xFFFF).astype('<u2').tobytes())


def _pack_24bit(values: np.ndarray) -> bytes:
    uvals = values & 0xFFFFFF
    out = np.empty(uvals.size * 3, dtype=np.uint8)
    out[0::3] = (uvals & 0xFF).astype(np.uint8)
    out[1::3] = ((uvals >> 8) & 0xFF).astype(np.uint8)
    out[2::3] = ((uvals >> 16) & 0xFF).astype(np.uint8)
    return out.tobytes()
