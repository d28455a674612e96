import logging
from enum import Enum
from typing import Optional

import numpy as np
from scipy import ndimage as ndi

from .header import FitsHeader

# Keywords cameras and capture programs use for the colour filter array layout.
PATTERN_KEYWORDS = (
    "BAYERPAT",
    "BAYERPATN",
    "BAYER_PATTERN",
    "BAYERPATTERN",
    "CFAPATTERN",
    "CFA_PATTERN",
    "COLORTYP",
)

_KERNEL_G = np.array([[0, 1, 0], [1, 4, 1], [0, 1, 0]], dtype=float) / 4.0
_KERNEL_RB = np.array([[1, 2, 1], [2, 4, 2], [1, 2, 1]], dtype=float) / 4.0


class BayerPattern(Enum):
    """2x2 colour filter layouts, read left to right, top to bottom."""

    RGGB = "RGGB"
    BGGR = "BGGR"
    GRBG = "GRBG"
    GBRG = "GBRG"

    def color_at(self, x: int, y: int) -> str:
        """Filter colour ('R', 'G' or 'B') over pixel (x, y)."""
        return self.value[(y % 2) * 2 + (x % 2)]

    def shifted(self, dx: int, dy: int) -> "BayerPattern":
        """Pattern seen when the origin moves by (dx, dy) pixels."""
        return BayerPattern("".join(self.color_at(x + dx, y + dy) for y in (0, 1) for x in (0, 1)))

    def channel_mask(self, shape, color: str) -> np.ndarray:
        h, w = shape
        tile = np.array([[self.color_at(x, y) == color for x in (0, 1)] for y in (0, 1)])
        return np.tile(tile, (h // 2 + 1, w // 2 + 1))[:h, :w]


def _match_pattern(value: str) -> Optional[BayerPattern]:
    text = value.upper()
    for pattern in BayerPattern:
        if pattern.value in text:
            return pattern
    compact = text.replace(",", "").replace(" ", "")
    for pattern in BayerPattern:
        if compact == pattern.value:
            return pattern
    return None


def detect_bayer_pattern(header: FitsHeader) -> Optional[BayerPattern]:
    """Read the CFA layout from the header, honouring XBAYROFF/YBAYROFF."""
    for keyword in PATTERN_KEYWORDS:
        value = header.get_str(keyword)
        if not value:
            continue
        pattern = _match_pattern(value)
        if pattern is None:
            logging.debug("Unrecognized Bayer pattern %s=%r", keyword, value)
            continue
        dx = header.get_int("XBAYROFF") or 0
        dy = header.get_int("YBAYROFF") or 0
        if dx or dy:
            pattern = pattern.shifted(dx, dy)
        return pattern
    return None


def has_color_filter_array(header: FitsHeader) -> bool:
    """True when the header advertises a one-shot-colour sensor."""
    for keyword in ("BAYERPAT", "COLORTYP"):
        if header.get_str(keyword):
            return True
    return "XBAYROFF" in header


def demosaic_bilinear(mono: np.ndarray, pattern: BayerPattern) -> np.ndarray:
    """Bilinear interpolation of a single-plane CFA frame.

    Args:
        mono: 2D raw mosaic.
        pattern: CFA layout at pixel (0, 0).

    Returns:
        (H, W, 3) float64 array in R, G, B order.
    """
    if mono.ndim != 2:
        raise ValueError(f"demosaic expects a 2D mosaic, got shape {mono.shape}")
    data = mono.astype(np.float64, copy=False)
    channels = []
    for color, kernel in (("R", _KERNEL_RB), ("G", _KERNEL_G), ("B", _KERNEL_RB)):
        sparse = np.where(pattern.channel_mask(data.shape, color), data, 0.0)
        channels.append(ndi.convolve(sparse, kernel, mode="mirror"))
    logging.info("Demosaiced %dx%d mosaic with %s pattern", data.shape[1], data.shape[0], pattern.value)
    return np.stack(channels, axis=-1)
