import logging
from dataclasses import dataclass
from typing import Dict, Tuple, Union

import numpy as np

from .byteorder import Buffer, SampleType, native_samples

Number = Union[int, float, np.ndarray]

# Representable range of each integer sample type; floats are never clamped.
CLAMP_RANGES: Dict[SampleType, Tuple[float, float]] = {
    SampleType.UINT8: (0.0, 255.0),
    SampleType.INT16: (-32768.0, 32767.0),
    SampleType.INT32: (-2147483648.0, 2147483647.0),
}


@dataclass(frozen=True)
class PixelScaling:
    """BZERO/BSCALE pair describing the stored-to-physical affine map."""

    bzero: float = 0.0
    bscale: float = 1.0

    @property
    def is_identity(self) -> bool:
        return self.bscale == 1.0 and self.bzero == 0.0


def physical_value(raw: Number, scaling: PixelScaling = PixelScaling()) -> Number:
    """Return ``bscale * raw + bzero`` without any clamping."""
    if scaling.is_identity:
        return raw
    return scaling.bscale * raw + scaling.bzero


def apply_scaling(samples: np.ndarray, sample_type: SampleType, scaling: PixelScaling) -> np.ndarray:
    """Apply BZERO/BSCALE to native-order samples, keeping the declared type.

    Integer outputs are clamped to the type's range and truncated toward zero.
    float32 results are computed in double precision and rounded back to
    float32. Identity scaling returns ``samples`` itself.

    Args:
        samples: Native-order array whose dtype matches ``sample_type``.
        sample_type: Declared sample type (from BITPIX).
        scaling: BZERO/BSCALE pair.

    Returns:
        Array with the same dtype and shape as ``samples``.
    """
    if scaling.is_identity:
        return samples

    physical = scaling.bscale * samples.astype(np.float64) + scaling.bzero
    clamp = CLAMP_RANGES.get(sample_type)
    if clamp is not None:
        lo, hi = clamp
        clipped = np.count_nonzero((physical < lo) | (physical > hi))
        if clipped:
            logging.debug(
                "Clamped %d %s samples to [%g, %g] after scaling.",
                clipped,
                sample_type.name.lower(),
                lo,
                hi,
            )
        physical = np.trunc(np.clip(physical, lo, hi))
    return physical.astype(sample_type.native_dtype)


def scale_buffer(native: Buffer, sample_type: SampleType, scaling: PixelScaling) -> bytes:
    """Apply :func:`apply_scaling` to a host-order byte buffer and return bytes."""
    if scaling.is_identity:
        return bytes(native)
    return apply_scaling(native_samples(native, sample_type), sample_type, scaling).tobytes()
