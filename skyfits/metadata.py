import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

import numpy as np

from .byteorder import SampleType
from .data_unit import axis_sizes, required_int
from .header import FitsHeader
from .scaling import Number, PixelScaling, physical_value
from .wcs import PixelPosition, PixelScale, SkyCoordinate, TransformMatrix, WCSParameters

CD_KEYWORDS = ("CD1_1", "CD1_2", "CD2_1", "CD2_2")


@dataclass(frozen=True)
class ImageBinning:
    horizontal: int = 1
    vertical: int = 1


@dataclass(frozen=True)
class ObservationInfo:
    """Observatory and acquisition keywords; every field is optional."""

    telescope: Optional[str] = None
    instrument: Optional[str] = None
    observer: Optional[str] = None
    object: Optional[str] = None
    filter: Optional[str] = None
    date_obs: Optional[datetime] = None
    exposure_time: Optional[float] = None
    temperature: Optional[float] = None
    gain: Optional[float] = None
    binning: ImageBinning = field(default_factory=ImageBinning)


@dataclass(frozen=True)
class ImageMetadata:
    """Structural description of a primary HDU plus optional science context.

    The base fields always exist once a header parses; ``observation`` holds
    the optional observatory keywords and ``wcs`` is None unless CRPIX1/2 and
    CRVAL1/2 are all present.
    """

    naxis: int
    axis_sizes: Tuple[int, ...]
    bitpix: int
    sample_type: SampleType
    scaling: PixelScaling
    header: FitsHeader
    observation: ObservationInfo = field(default_factory=ObservationInfo)
    wcs: Optional[WCSParameters] = None
    source_name: Optional[str] = None
    file_size: Optional[int] = None

    @property
    def width(self) -> int:
        return self.axis_sizes[0] if self.axis_sizes else 0

    @property
    def height(self) -> int:
        if len(self.axis_sizes) > 1:
            return self.axis_sizes[1]
        return 1 if self.axis_sizes else 0

    @property
    def plane_count(self) -> int:
        """Number of 2-D planes (1 unless NAXIS > 2)."""
        return int(np.prod(self.axis_sizes[2:], dtype=np.int64)) if len(self.axis_sizes) > 2 else 1

    @property
    def bytes_per_sample(self) -> int:
        return self.sample_type.bytes_per_sample

    @property
    def payload_bytes(self) -> int:
        if not self.axis_sizes:
            return 0
        return int(np.prod(self.axis_sizes, dtype=np.int64)) * self.bytes_per_sample

    @property
    def is_signed_integer(self) -> bool:
        return self.sample_type.is_signed_integer

    @property
    def is_floating_point(self) -> bool:
        return self.sample_type.is_floating_point

    @property
    def total_pixels(self) -> int:
        return self.width * self.height

    @property
    def aspect_ratio(self) -> float:
        if self.height == 0:
            return 1.0
        return self.width / self.height

    @property
    def megapixels(self) -> float:
        return self.total_pixels / 1_000_000.0

    @property
    def has_wcs(self) -> bool:
        return self.wcs is not None

    @property
    def has_astronomical_info(self) -> bool:
        obs = self.observation
        return obs.object is not None or obs.telescope is not None or obs.exposure_time is not None

    @property
    def completeness_score(self) -> float:
        """Fraction of object/telescope/filter/exposure that the header supplies."""
        obs = self.observation
        fields = (obs.object, obs.telescope, obs.filter, obs.exposure_time)
        return sum(value is not None for value in fields) / len(fields)

    @property
    def custom_metadata(self) -> Dict[str, str]:
        return dict(self.header.table)

    def custom_value(self, key: str) -> Optional[str]:
        return self.header.get(key)

    def physical_value(self, raw: Number) -> Number:
        return physical_value(raw, self.scaling)

    def __str__(self) -> str:
        return f"FITS {self.width}x{self.height} ({self.megapixels:.1f}MP, {self.sample_type.name.lower()})"


def projection_code(ctype: Optional[str]) -> Optional[str]:
    """Projection code from a CTYPE value, e.g. ``RA---TAN`` -> ``TAN``."""
    if not ctype or len(ctype) < 8 or ctype[4] != "-":
        return None
    code = ctype[5:8].strip("- ").upper()
    return code or None


def _first_float(header: FitsHeader, *keywords: str) -> Optional[float]:
    for keyword in keywords:
        value = header.get_float(keyword)
        if value is not None:
            return value
    return None


def _first_str(header: FitsHeader, *keywords: str) -> Optional[str]:
    for keyword in keywords:
        value = header.get_str(keyword)
        if value:
            return value
    return None


def extract_wcs(header: FitsHeader) -> Optional[WCSParameters]:
    """Build WCS parameters from the header, or None when they are absent or unusable."""
    crpix1, crpix2 = header.get_float("CRPIX1"), header.get_float("CRPIX2")
    crval1, crval2 = header.get_float("CRVAL1"), header.get_float("CRVAL2")
    if None in (crpix1, crpix2, crval1, crval2):
        logging.debug("No celestial WCS: CRPIX1/2 and CRVAL1/2 not all present")
        return None
    if not np.all(np.isfinite([crpix1, crpix2, crval1, crval2])):
        logging.warning("Ignoring WCS with non-finite reference values")
        return None

    cd_values = [header.get_float(k) for k in CD_KEYWORDS]
    matrix = None
    if any(v is not None for v in cd_values):
        # Missing CD elements default to zero.
        matrix = TransformMatrix(*(v if v is not None else 0.0 for v in cd_values))

    cdelt1 = _first_float(header, "CDELT1", "CD1_1") or 0.0
    cdelt2 = _first_float(header, "CDELT2", "CD2_2") or 0.0
    scale_values = [v for v in cd_values if v is not None] + [cdelt1, cdelt2]
    if not np.all(np.isfinite(scale_values)):
        logging.warning("Ignoring WCS with non-finite CDELT or CD matrix values")
        return None
    if matrix is None and (cdelt1 == 0.0 or cdelt2 == 0.0):
        logging.warning("Ignoring WCS without a usable pixel scale (CDELT1=%g, CDELT2=%g)", cdelt1, cdelt2)
        return None

    ctype1 = header.get_str("CTYPE1") or "RA"
    ctype2 = header.get_str("CTYPE2") or "DEC"
    wcs = WCSParameters(
        reference_pixel=PixelPosition(crpix1, crpix2),
        reference_value=SkyCoordinate(crval1, crval2),
        pixel_scale=PixelScale(cdelt1, cdelt2),
        coordinate_types=(ctype1, ctype2),
        projection=projection_code(ctype1),
        coordinate_system=_first_str(header, "RADESYS", "RADECSYS"),
        equinox=_first_float(header, "EQUINOX", "EPOCH"),
        transform_matrix=matrix,
        rotation_angle=_first_float(header, "CROTA2", "CROTA1"),
    )
    logging.debug(
        "WCS: CRVAL=(%.6f, %.6f) projection=%s CD=%s", crval1, crval2, wcs.projection, matrix is not None
    )
    return wcs


def extract_observation(header: FitsHeader) -> ObservationInfo:
    return ObservationInfo(
        telescope=header.get_str("TELESCOP"),
        instrument=header.get_str("INSTRUME"),
        observer=header.get_str("OBSERVER"),
        object=header.get_str("OBJECT"),
        filter=header.get_str("FILTER"),
        date_obs=header.get_date("DATE-OBS"),
        exposure_time=_first_float(header, "EXPTIME", "EXPOSURE"),
        temperature=_first_float(header, "CCD-TEMP", "TEMP"),
        gain=header.get_float("GAIN"),
        binning=ImageBinning(
            horizontal=header.get_int("XBINNING") or 1,
            vertical=header.get_int("YBINNING") or 1,
        ),
    )


def build_metadata(
    header: FitsHeader, source_name: Optional[str] = None, file_size: Optional[int] = None
) -> ImageMetadata:
    """Assemble image metadata from a parsed primary header.

    Raises:
        MissingRequiredKeyword: if NAXIS, BITPIX or any NAXISn is absent.
        UnsupportedBitDepth: if BITPIX is not one of 8, 16, 32, -32, -64.
    """
    naxis = required_int(header, "NAXIS")
    bitpix = required_int(header, "BITPIX")
    sizes = tuple(axis_sizes(header))
    sample_type = SampleType.from_bitpix(bitpix)

    bzero = header.get_float("BZERO")
    bscale = header.get_float("BSCALE")
    scaling = PixelScaling(
        bzero=bzero if bzero is not None else 0.0,
        bscale=bscale if bscale is not None else 1.0,
    )

    metadata = ImageMetadata(
        naxis=naxis,
        axis_sizes=sizes,
        bitpix=bitpix,
        sample_type=sample_type,
        scaling=scaling,
        header=header,
        observation=extract_observation(header),
        wcs=extract_wcs(header),
        source_name=source_name,
        file_size=file_size,
    )
    logging.info(
        "FITS metadata: NAXIS=%d axes=%s BITPIX=%d BZERO=%g BSCALE=%g WCS=%s",
        naxis,
        sizes,
        bitpix,
        scaling.bzero,
        scaling.bscale,
        "yes" if metadata.has_wcs else "no",
    )
    return metadata
