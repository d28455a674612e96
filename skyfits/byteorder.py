"""Sample types and big-endian to host byte order conversion."""

import sys
from enum import Enum
from typing import Union

import numpy as np

from .errors import CorruptedData, UnsupportedBitDepth

Buffer = Union[bytes, bytearray, memoryview]

HOST_IS_LITTLE_ENDIAN = sys.byteorder == "little"


class SampleType(Enum):
    """The five FITS sample types, keyed by their BITPIX value."""

    UINT8 = 8
    INT16 = 16
    INT32 = 32
    FLOAT32 = -32
    FLOAT64 = -64

    @classmethod
    def from_bitpix(cls, bitpix: int) -> "SampleType":
        try:
            return cls(int(bitpix))
        except (TypeError, ValueError) as exc:
            raise UnsupportedBitDepth(bitpix) from exc

    @property
    def bitpix(self) -> int:
        return self.value

    @property
    def bit_depth(self) -> int:
        return abs(self.value)

    @property
    def bytes_per_sample(self) -> int:
        return abs(self.value) // 8

    @property
    def is_floating_point(self) -> bool:
        return self.value < 0

    @property
    def is_signed_integer(self) -> bool:
        return self.value > 8

    @property
    def disk_dtype(self) -> np.dtype:
        """Big-endian dtype of the on-disk representation."""
        return np.dtype(_DTYPE_CODES[self]).newbyteorder(">")

    @property
    def native_dtype(self) -> np.dtype:
        return np.dtype(_DTYPE_CODES[self]).newbyteorder("=")

    @property
    def word_dtype(self) -> np.dtype:
        """Unsigned integer dtype of the same width, used to move bit patterns."""
        return np.dtype(f"u{self.bytes_per_sample}")


_DTYPE_CODES = {
    SampleType.UINT8: "u1",
    SampleType.INT16: "i2",
    SampleType.INT32: "i4",
    SampleType.FLOAT32: "f4",
    SampleType.FLOAT64: "f8",
}


def _check_length(data: Buffer, sample_type: SampleType) -> int:
    width = sample_type.bytes_per_sample
    length = len(memoryview(data).cast("B"))
    if length % width != 0:
        raise CorruptedData(
            f"{length} bytes is not a whole number of {width}-byte {sample_type.name.lower()} samples"
        )
    return length // width


def swap_bytes(data: Buffer, sample_type: SampleType) -> bytes:
    """Reverse the byte order of every sample in ``data``.

    Floating point samples are swapped through their unsigned integer view so
    NaN payloads and signed zeros survive. Applying this twice returns the
    original bytes.
    """
    _check_length(data, sample_type)
    if sample_type.bytes_per_sample == 1:
        return bytes(data)
    words = np.frombuffer(data, dtype=sample_type.word_dtype)
    return words.byteswap().tobytes()


def to_native(data: Buffer, sample_type: SampleType) -> bytes:
    """Convert big-endian FITS samples to host byte order."""
    _check_length(data, sample_type)
    if sample_type.bytes_per_sample == 1 or not HOST_IS_LITTLE_ENDIAN:
        return bytes(data)
    return swap_bytes(data, sample_type)


def decode_samples(data: Buffer, sample_type: SampleType) -> np.ndarray:
    """Decode big-endian FITS samples into a native-order numpy array."""
    count = _check_length(data, sample_type)
    big = np.frombuffer(data, dtype=sample_type.word_dtype.newbyteorder(">"), count=count)
    return big.astype(sample_type.word_dtype.newbyteorder("=")).view(sample_type.native_dtype)


def native_samples(data: Buffer, sample_type: SampleType) -> np.ndarray:
    """View a buffer that is already in host order as typed samples (read-only)."""
    count = _check_length(data, sample_type)
    return np.frombuffer(data, dtype=sample_type.native_dtype, count=count)
