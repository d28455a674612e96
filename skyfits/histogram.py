"""Pixel statistics at a fixed 16-bit presentation depth.

Samples of every type are first mapped to 0..65535:

- uint8 is widened unchanged;
- int16 is reinterpreted as uint16 (the bit pattern is kept);
- int32 becomes ``trunc(v / 65536) + 32768``, clamped;
- float32/float64 become ``trunc(clamp(v * 65535, 0, 65535))``, so data
  normalized to [0, 1] fills the range. Non-finite samples are dropped.

The int32 and float mappings are a lossy display approximation, not a
calibrated transform.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .byteorder import Buffer, SampleType, native_samples

PRESENTATION_LEVELS = 65536
PRESENTATION_MAX = PRESENTATION_LEVELS - 1


@dataclass(frozen=True)
class HistogramParams:
    """Options for histogram summaries and plots."""

    bit_depth: int = 16
    plot_bins: int = 256
    log_scale: bool = True


def to_presentation_depth(samples: np.ndarray, sample_type: SampleType) -> np.ndarray:
    """Map native-order samples to uint16 presentation values."""
    samples = np.asarray(samples).ravel()
    if sample_type is SampleType.UINT8:
        return samples.astype(np.uint16)
    if sample_type is SampleType.INT16:
        return samples.astype(np.int16, copy=False).view(np.uint16)
    if sample_type is SampleType.INT32:
        shifted = np.trunc(samples.astype(np.float64) / 65536.0) + 32768.0
        return np.clip(shifted, 0, PRESENTATION_MAX).astype(np.uint16)

    finite = samples[np.isfinite(samples)]
    if finite.size != samples.size:
        logging.warning("Dropping %d non-finite samples from histogram", samples.size - finite.size)
    scaled = finite.astype(np.float64) * PRESENTATION_MAX
    return np.trunc(np.clip(scaled, 0, PRESENTATION_MAX)).astype(np.uint16)


@dataclass(frozen=True)
class HistogramStatistics:
    """Summary statistics of 16-bit presentation values.

    ``counts`` holds one entry per presentation level and backs
    :meth:`bins` and :meth:`order_percentile`.
    """

    count: int
    minimum: float
    maximum: float
    mean: float
    standard_deviation: float
    bit_depth: int = 16
    counts: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    def percentile(self, p: float) -> float:
        """Linear interpolation between minimum and maximum.

        This ignores the distribution shape; see :meth:`order_percentile`.
        """
        p = max(0.0, min(100.0, p))
        return self.minimum + (self.maximum - self.minimum) * (p / 100.0)

    def order_percentile(self, p: float) -> float:
        """Smallest presentation level at or below which ``p`` percent of samples fall."""
        if self.count == 0 or self.counts is None:
            return 0.0
        p = max(0.0, min(100.0, p))
        cumulative = np.cumsum(self.counts)
        target = max(1, int(np.ceil(self.count * p / 100.0)))
        return float(np.searchsorted(cumulative, target))

    def bins(self, count: int) -> List[int]:
        """Regroup the presentation levels into ``count`` equal-width bins."""
        if count <= 0:
            return []
        if count > PRESENTATION_LEVELS:
            raise ValueError(f"cannot split {PRESENTATION_LEVELS} levels into {count} bins")
        if self.counts is None:
            return [0] * count
        edges = np.linspace(0, PRESENTATION_LEVELS, count + 1).astype(np.int64)
        return [int(t) for t in np.add.reduceat(self.counts, edges[:-1])]

    def normalized_bins(self, count: int) -> List[float]:
        """:meth:`bins` scaled so the fullest bin is 1.0."""
        values = self.bins(count)
        peak = max(values, default=0)
        if peak == 0:
            return [0.0] * len(values)
        return [v / peak for v in values]


class HistogramAccumulator:
    """Accumulates presentation values chunk by chunk.

    State is a vector of integer counts, so partial accumulators combine
    with :meth:`merge` in any order to the same result.
    """

    def __init__(self, bit_depth: int = 16) -> None:
        self.bit_depth = bit_depth
        self.counts = np.zeros(PRESENTATION_LEVELS, dtype=np.int64)

    def update(self, values: np.ndarray) -> "HistogramAccumulator":
        values = np.asarray(values, dtype=np.uint16).ravel()
        if values.size:
            self.counts += np.bincount(values, minlength=PRESENTATION_LEVELS)
        return self

    def merge(self, other: "HistogramAccumulator") -> "HistogramAccumulator":
        merged = HistogramAccumulator(self.bit_depth)
        merged.counts = self.counts + other.counts
        return merged

    def finalize(self) -> HistogramStatistics:
        count = int(self.counts.sum())
        if count == 0:
            return HistogramStatistics(0, 0.0, 0.0, 0.0, 0.0, self.bit_depth, self.counts.copy())

        occupied = np.flatnonzero(self.counts)
        levels = np.arange(PRESENTATION_LEVELS, dtype=object)
        counts = self.counts.astype(object)
        # Exact integer sums; converted to float only at the end.
        total = int((levels * counts).sum())
        total_sq = int((levels * levels * counts).sum())
        mean = total / count
        variance = (count * total_sq - total * total) / (count * count)

        return HistogramStatistics(
            count=count,
            minimum=float(occupied[0]),
            maximum=float(occupied[-1]),
            mean=float(mean),
            standard_deviation=float(np.sqrt(max(variance, 0.0))),
            bit_depth=self.bit_depth,
            counts=self.counts.copy(),
        )


def compute_histogram(
    native: Buffer, sample_type: SampleType, chunk_samples: int = 1 << 20
) -> HistogramStatistics:
    """Histogram statistics of a host-order (already scaled) sample buffer."""
    samples = native_samples(native, sample_type)
    accumulator = HistogramAccumulator()
    for start in range(0, samples.size, chunk_samples):
        accumulator.update(to_presentation_depth(samples[start : start + chunk_samples], sample_type))
    stats = accumulator.finalize()
    logging.info(
        "Histogram: n=%d min=%.0f max=%.0f mean=%.3f std=%.3f",
        stats.count,
        stats.minimum,
        stats.maximum,
        stats.mean,
        stats.standard_deviation,
    )
    return stats
