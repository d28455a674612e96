import logging

import numpy as np
import pytest

from skyfits.byteorder import SampleType
from skyfits.histogram import (
    PRESENTATION_LEVELS,
    HistogramAccumulator,
    HistogramStatistics,
    compute_histogram,
    to_presentation_depth,
)


def test_constant_image():
    stats = compute_histogram(np.full(100, 42, dtype=np.uint8).tobytes(), SampleType.UINT8)
    assert stats.count == 100
    assert stats.minimum == stats.maximum == stats.mean == 42.0
    assert stats.standard_deviation == 0.0


def test_population_standard_deviation():
    stats = compute_histogram(np.array([0, 2], dtype=np.uint8).tobytes(), SampleType.UINT8)
    assert stats.mean == 1.0
    assert stats.standard_deviation == 1.0


def test_int16_keeps_bit_pattern():
    values = to_presentation_depth(np.array([-1, -32768, 0, 32767], dtype=np.int16), SampleType.INT16)
    np.testing.assert_array_equal(values, [65535, 32768, 0, 32767])


def test_int32_mapping():
    samples = np.array([0, 65536, -65536, 2147483647, -2147483648], dtype=np.int32)
    values = to_presentation_depth(samples, SampleType.INT32)
    np.testing.assert_array_equal(values, [32768, 32769, 32767, 65535, 0])


def test_float_mapping_drops_non_finite(caplog):
    samples = np.array([0.0, 0.5, 1.0, 2.0, -1.0, np.nan, np.inf], dtype=np.float32)
    with caplog.at_level(logging.WARNING):
        values = to_presentation_depth(samples, SampleType.FLOAT32)
    np.testing.assert_array_equal(values, [0, 32767, 65535, 65535, 0])
    assert "non-finite" in caplog.text

    stats = compute_histogram(samples.tobytes(), SampleType.FLOAT32)
    assert stats.count == 5


def test_empty_input():
    stats = compute_histogram(b"", SampleType.INT16)
    assert (stats.count, stats.minimum, stats.maximum, stats.mean, stats.standard_deviation) == (0, 0, 0, 0, 0)
    assert stats.order_percentile(50) == 0.0
    assert stats.bins(4) == [0, 0, 0, 0]


def test_statistics_bounds(rng):
    samples = rng.integers(0, 65535, size=5000, dtype=np.uint16).astype(np.int16)
    stats = compute_histogram(samples.tobytes(), SampleType.INT16)
    assert stats.minimum <= stats.mean <= stats.maximum
    assert stats.standard_deviation >= 0
    reference = samples.view(np.uint16).astype(np.float64)
    assert stats.mean == pytest.approx(reference.mean())
    assert stats.standard_deviation == pytest.approx(reference.std())


def test_chunking_does_not_change_result(rng):
    raw = rng.integers(0, 256, size=1001, dtype=np.uint8).tobytes()
    assert compute_histogram(raw, SampleType.UINT8, chunk_samples=7) == compute_histogram(raw, SampleType.UINT8)


def test_merge_is_order_independent(rng):
    parts = [rng.integers(0, 65536, size=n).astype(np.uint16) for n in (10, 300, 1)]
    a, b, c = (HistogramAccumulator().update(p) for p in parts)
    left = a.merge(b).merge(c).finalize()
    right = c.merge(a.merge(b)).finalize()
    single = HistogramAccumulator().update(np.concatenate(parts)).finalize()
    assert left == right == single
    np.testing.assert_array_equal(left.counts, single.counts)


def test_merge_leaves_inputs_untouched():
    a = HistogramAccumulator().update(np.array([1, 2], dtype=np.uint16))
    b = HistogramAccumulator().update(np.array([3], dtype=np.uint16))
    a.merge(b)
    assert a.finalize().count == 2


def test_percentile_is_linear_between_extremes():
    stats = HistogramStatistics(count=10, minimum=10.0, maximum=110.0, mean=50.0, standard_deviation=5.0)
    assert stats.percentile(0) == 10.0
    assert stats.percentile(50) == 60.0
    assert stats.percentile(100) == 110.0
    assert stats.percentile(150) == 110.0
    assert stats.percentile(-5) == 10.0


def test_order_percentile():
    stats = compute_histogram(np.arange(100, dtype=np.uint8).tobytes(), SampleType.UINT8)
    assert stats.order_percentile(50) == 49.0
    assert stats.order_percentile(0) == 0.0
    assert stats.order_percentile(100) == 99.0


def test_bins():
    samples = np.array([0, 1, 16384, 65535, 65535], dtype=np.uint16).view(np.int16)
    stats = compute_histogram(samples.tobytes(), SampleType.INT16)
    assert stats.bins(4) == [2, 1, 0, 2]
    assert sum(stats.bins(256)) == stats.count
    assert len(stats.bins(PRESENTATION_LEVELS)) == PRESENTATION_LEVELS
    assert stats.bins(0) == []
    assert stats.normalized_bins(4) == [1.0, 0.5, 0.0, 1.0]
    with pytest.raises(ValueError):
        stats.bins(PRESENTATION_LEVELS + 1)
