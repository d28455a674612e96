import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from .histogram import PRESENTATION_LEVELS, HistogramParams, HistogramStatistics  # noqa: E402


def save_histogram(
    stats: HistogramStatistics,
    out_path: Path,
    title: str,
    params: HistogramParams = HistogramParams(),
) -> None:
    """Save a presentation-level histogram with log y-axis and percentile markers."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.figure(figsize=(6, 4))
    if stats.count == 0:
        logging.warning("No pixels to plot histogram.")
        plt.text(0.5, 0.5, "No valid pixels", ha="center", va="center")
    else:
        counts = np.asarray(stats.bins(params.plot_bins), dtype=float)
        edges = np.linspace(0, PRESENTATION_LEVELS, params.plot_bins + 1)
        plt.stairs(counts, edges, fill=True, color="#607c8e", alpha=0.85)
        if params.log_scale:
            plt.yscale("log", nonpositive="clip")
        plt.axvline(stats.mean, color="tab:red", linestyle="--", label="Mean")
        plt.axvline(stats.order_percentile(16), color="#ffa500", linestyle=":", label="16/84")
        plt.axvline(stats.order_percentile(84), color="#ffa500", linestyle=":")
        plt.legend(fontsize="small")
        plt.xlim(stats.minimum, max(stats.maximum, stats.minimum + 1))
        plt.xlabel(f"Pixel value ({params.bit_depth}-bit presentation)")
        plt.ylabel("Pixels (log scale)" if params.log_scale else "Pixels")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_path, dpi=150)
    plt.close()
    logging.info("Saved histogram: %s", out_path)
