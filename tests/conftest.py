from typing import Any, Iterable, Sequence

import numpy as np
import pytest

from skyfits.byteorder import SampleType
from skyfits.header import build_header, pad_to_block


def make_fits(stored: np.ndarray, bitpix: int, cards: Iterable[Sequence[Any]] = ()) -> bytes:
    """Build a primary-HDU FITS file from stored (pre-BZERO/BSCALE) sample values."""
    stored = np.asarray(stored)
    axes = stored.shape[::-1]
    header_cards = [
        ("SIMPLE", True, "conforms to FITS standard"),
        ("BITPIX", bitpix),
        ("NAXIS", len(axes)),
    ]
    header_cards += [(f"NAXIS{i}", size) for i, size in enumerate(axes, start=1)]
    header_cards += list(cards)
    payload = stored.astype(SampleType.from_bitpix(bitpix).disk_dtype).tobytes()
    return build_header(header_cards) + pad_to_block(payload)


WCS_CARDS = [
    ("CTYPE1", "RA---TAN"),
    ("CTYPE2", "DEC--TAN"),
    ("CRPIX1", 512.5),
    ("CRPIX2", 512.5),
    ("CRVAL1", 185.0),
    ("CRVAL2", 12.0),
    ("CDELT1", -0.0002777),
    ("CDELT2", 0.0002777),
    ("RADESYS", "ICRS"),
    ("EQUINOX", 2000.0),
]


@pytest.fixture
def fits_bytes():
    return make_fits


@pytest.fixture
def wcs_cards():
    return list(WCS_CARDS)


@pytest.fixture
def rng():
    return np.random.default_rng(20240501)
