"""World Coordinate System math for celestial images.

Angles are in degrees throughout: RA in [0, 360), Dec in [-90, 90]. The
formulas follow FITS WCS Paper II (Calabretta & Greisen 2002) for the
gnomonic (TAN) projection. Functions accept scalars or numpy arrays; scalar
inputs give plain floats back.
"""

import logging
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple, Union

import numpy as np

from .errors import ProjectionSingularity

ArrayLike = Union[float, np.ndarray]

DEG_TO_RAD = np.pi / 180.0
RAD_TO_DEG = 180.0 / np.pi
ARCSEC_PER_DEGREE = 3600.0
# Radians to arcseconds, used by the plate-scale formula.
ARCSEC_PER_RADIAN = 206265.0


class SkyCoordinate(NamedTuple):
    ra: ArrayLike
    dec: ArrayLike


class PixelPosition(NamedTuple):
    x: ArrayLike
    y: ArrayLike


class PixelScale(NamedTuple):
    x: float
    y: float


class FieldOfView(NamedTuple):
    width: float
    height: float
    diagonal: float


@dataclass(frozen=True)
class WCSValidationLimits:
    """Thresholds used by :meth:`WCSParameters.validate` and matrix inversion."""

    min_arcsec_per_pixel: float = 0.1
    max_arcsec_per_pixel: float = 600.0
    singular_determinant: float = 1e-15


def _out(value):
    if np.ndim(value) == 0:
        return float(value)
    return value


def normalize_ra(ra: ArrayLike) -> ArrayLike:
    """Map right ascension into [0, 360)."""
    wrapped = np.mod(ra, 360.0)
    # np.mod can round a tiny negative input up to exactly 360.
    wrapped = np.where(wrapped >= 360.0, wrapped - 360.0, wrapped)
    return _out(wrapped)


def validate_declination(dec: ArrayLike) -> ArrayLike:
    """Clamp declination to [-90, 90]."""
    return _out(np.clip(dec, -90.0, 90.0))


def validate_coordinates(ra: ArrayLike, dec: ArrayLike) -> SkyCoordinate:
    return SkyCoordinate(normalize_ra(ra), validate_declination(dec))


def angular_separation(ra1: ArrayLike, dec1: ArrayLike, ra2: ArrayLike, dec2: ArrayLike) -> ArrayLike:
    """Great-circle distance between two sky positions (haversine formula)."""
    ra1_r, dec1_r = np.asarray(ra1) * DEG_TO_RAD, np.asarray(dec1) * DEG_TO_RAD
    ra2_r, dec2_r = np.asarray(ra2) * DEG_TO_RAD, np.asarray(dec2) * DEG_TO_RAD
    delta_ra = ra2_r - ra1_r
    delta_dec = dec2_r - dec1_r

    a = np.sin(delta_dec / 2) ** 2 + np.cos(dec1_r) * np.cos(dec2_r) * np.sin(delta_ra / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return _out(c * RAD_TO_DEG)


def tan_project(ra: ArrayLike, dec: ArrayLike, ra0: float, dec0: float) -> Tuple[ArrayLike, ArrayLike]:
    """Gnomonic projection of sky coordinates onto the plane tangent at (ra0, dec0).

    Returns:
        Tangent-plane offsets (x, y) in degrees.

    Raises:
        ProjectionSingularity: if any point lies 90 degrees or more from the
            tangent point, where the projection is undefined.
    """
    ra_r, dec_r = np.asarray(ra) * DEG_TO_RAD, np.asarray(dec) * DEG_TO_RAD
    ra0_r, dec0_r = ra0 * DEG_TO_RAD, dec0 * DEG_TO_RAD
    delta_ra = ra_r - ra0_r

    cos_c = np.sin(dec0_r) * np.sin(dec_r) + np.cos(dec0_r) * np.cos(dec_r) * np.cos(delta_ra)
    if np.any(cos_c <= 0):
        raise ProjectionSingularity("point too far from tangent point for TAN projection")

    x = np.cos(dec_r) * np.sin(delta_ra) / cos_c
    y = (np.sin(dec_r) * np.cos(dec0_r) - np.cos(dec_r) * np.sin(dec0_r) * np.cos(delta_ra)) / cos_c
    return _out(x * RAD_TO_DEG), _out(y * RAD_TO_DEG)


def tan_deproject(x: ArrayLike, y: ArrayLike, ra0: float, dec0: float) -> SkyCoordinate:
    """Inverse gnomonic projection from tangent-plane offsets (degrees) to the sky."""
    x_r, y_r = np.asarray(x, dtype=float) * DEG_TO_RAD, np.asarray(y, dtype=float) * DEG_TO_RAD
    rho = np.hypot(x_r, y_r)
    if np.ndim(rho) == 0 and rho == 0:
        return validate_coordinates(float(ra0), float(dec0))

    ra0_r, dec0_r = ra0 * DEG_TO_RAD, dec0 * DEG_TO_RAD
    at_origin = rho == 0
    safe_rho = np.where(at_origin, 1.0, rho)
    c = np.arctan(rho)
    sin_c, cos_c = np.sin(c), np.cos(c)

    dec = np.arcsin(np.clip(cos_c * np.sin(dec0_r) + y_r * sin_c * np.cos(dec0_r) / safe_rho, -1.0, 1.0))
    ra = ra0_r + np.arctan2(
        x_r * sin_c, safe_rho * np.cos(dec0_r) * cos_c - y_r * np.sin(dec0_r) * sin_c
    )
    ra_deg = np.where(at_origin, ra0, ra * RAD_TO_DEG)
    dec_deg = np.where(at_origin, dec0, dec * RAD_TO_DEG)
    return validate_coordinates(ra_deg, dec_deg)


def field_of_view(width: float, height: float, scale_x: float, scale_y: float) -> FieldOfView:
    """Field of view in degrees for an image of ``width`` x ``height`` pixels."""
    fov_w = width * abs(scale_x)
    fov_h = height * abs(scale_y)
    return FieldOfView(fov_w, fov_h, float(np.hypot(fov_w, fov_h)))


def arcsec_to_degrees(arcsec: float) -> float:
    return arcsec / ARCSEC_PER_DEGREE


def degrees_to_arcsec(degrees: float) -> float:
    return degrees * ARCSEC_PER_DEGREE


def pixel_scale_from_optics(focal_length_mm: float, pixel_size_um: float) -> float:
    """Plate scale in arcsec/pixel for a given focal length and pixel pitch."""
    return (pixel_size_um / 1000.0) / focal_length_mm * ARCSEC_PER_RADIAN


@dataclass(frozen=True)
class TransformMatrix:
    """2x2 CD matrix mapping pixel offsets to intermediate world coordinates (degrees)."""

    cd11: float
    cd12: float
    cd21: float
    cd22: float

    @classmethod
    def from_cdelt(cls, cdelt1: float, cdelt2: float, crota2: float = 0.0) -> "TransformMatrix":
        rot = crota2 * DEG_TO_RAD
        cos_r, sin_r = float(np.cos(rot)), float(np.sin(rot))
        return cls(
            cd11=cdelt1 * cos_r,
            cd12=-cdelt2 * sin_r,
            cd21=cdelt1 * sin_r,
            cd22=cdelt2 * cos_r,
        )

    @property
    def determinant(self) -> float:
        return self.cd11 * self.cd22 - self.cd12 * self.cd21

    @property
    def effective_pixel_scale(self) -> float:
        """Geometric-mean pixel scale, sqrt(|det|)."""
        return float(np.sqrt(abs(self.determinant)))

    def transform(self, dx: ArrayLike, dy: ArrayLike) -> Tuple[ArrayLike, ArrayLike]:
        return (
            _out(self.cd11 * np.asarray(dx) + self.cd12 * np.asarray(dy)),
            _out(self.cd21 * np.asarray(dx) + self.cd22 * np.asarray(dy)),
        )

    def inverse_transform(
        self,
        x: ArrayLike,
        y: ArrayLike,
        fallback_scale: Optional[Tuple[float, float]] = None,
        singular_determinant: float = WCSValidationLimits.singular_determinant,
    ) -> Tuple[ArrayLike, ArrayLike]:
        """Solve ``transform(dx, dy) == (x, y)`` for the pixel offsets.

        A near-singular matrix falls back to per-axis division by
        ``fallback_scale`` (the diagonal when not given).
        """
        x, y = np.asarray(x, dtype=float), np.asarray(y, dtype=float)
        det = self.determinant
        if abs(det) > singular_determinant:
            dx = (self.cd22 * x - self.cd12 * y) / det
            dy = (-self.cd21 * x + self.cd11 * y) / det
            return _out(dx), _out(dy)

        sx, sy = fallback_scale if fallback_scale is not None else (self.cd11, self.cd22)
        logging.debug("Singular CD matrix (det=%g); using scale-only inverse", det)
        if sx == 0 or sy == 0:
            raise ProjectionSingularity("pixel transform is degenerate (zero scale)")
        return _out(x / sx), _out(y / sy)


@dataclass(frozen=True)
class WCSParameters:
    """Celestial WCS of a 2-D image.

    ``reference_pixel`` follows the FITS 1-based convention, while
    :meth:`world_coordinates` and :meth:`pixel_coordinates` use 0-based
    pixel indices. A CD matrix, when present, overrides CDELT and rotation.
    """

    reference_pixel: PixelPosition
    reference_value: SkyCoordinate
    pixel_scale: PixelScale
    coordinate_types: Tuple[str, str] = ("RA", "DEC")
    projection: Optional[str] = None
    coordinate_system: Optional[str] = None
    equinox: Optional[float] = None
    transform_matrix: Optional[TransformMatrix] = None
    rotation_angle: Optional[float] = None

    @property
    def epoch(self) -> float:
        return self.equinox if self.equinox is not None else 2000.0

    @property
    def pixel_matrix(self) -> TransformMatrix:
        """The CD matrix, or one synthesized from CDELT and CROTA2."""
        if self.transform_matrix is not None:
            return self.transform_matrix
        return TransformMatrix.from_cdelt(
            self.pixel_scale.x, self.pixel_scale.y, self.rotation_angle or 0.0
        )

    @property
    def is_tan(self) -> bool:
        return (self.projection or "").upper() == "TAN"

    @property
    def effective_pixel_scale(self) -> PixelScale:
        if self.transform_matrix is not None:
            scale = self.transform_matrix.effective_pixel_scale
            return PixelScale(scale, scale)
        return self.pixel_scale

    @property
    def pixel_scale_arcsec(self) -> PixelScale:
        scale = self.effective_pixel_scale
        return PixelScale(degrees_to_arcsec(abs(scale.x)), degrees_to_arcsec(abs(scale.y)))

    def world_coordinates(self, x: ArrayLike, y: ArrayLike) -> SkyCoordinate:
        """Sky position of 0-based pixel (x, y)."""
        dx = np.asarray(x, dtype=float) + 1.0 - self.reference_pixel.x
        dy = np.asarray(y, dtype=float) + 1.0 - self.reference_pixel.y
        ix, iy = self.pixel_matrix.transform(dx, dy)

        ra0, dec0 = self.reference_value
        if self.is_tan:
            ra, dec = tan_deproject(ix, iy, ra0, dec0)
        else:
            ra, dec = ra0 + np.asarray(ix), dec0 + np.asarray(iy)
        return validate_coordinates(ra, dec)

    def pixel_coordinates(self, ra: ArrayLike, dec: ArrayLike) -> PixelPosition:
        """0-based pixel position of a sky coordinate.

        Raises:
            ProjectionSingularity: for TAN images when the point is on or
                behind the hemisphere opposite the reference point.
        """
        ra, dec = validate_coordinates(ra, dec)
        ra0, dec0 = self.reference_value
        if self.is_tan:
            ix, iy = tan_project(ra, dec, ra0, dec0)
        else:
            # Shortest way round the RA seam.
            ix = np.mod(np.asarray(ra) - ra0 + 180.0, 360.0) - 180.0
            iy = np.asarray(dec) - dec0

        dx, dy = self.pixel_matrix.inverse_transform(ix, iy, fallback_scale=tuple(self.pixel_scale))
        return PixelPosition(
            _out(self.reference_pixel.x + np.asarray(dx) - 1.0),
            _out(self.reference_pixel.y + np.asarray(dy) - 1.0),
        )

    def field_of_view(self, image_width: float, image_height: float) -> FieldOfView:
        scale = self.effective_pixel_scale
        return field_of_view(image_width, image_height, scale.x, scale.y)

    def validate(self, limits: WCSValidationLimits = WCSValidationLimits()) -> List[str]:
        """Advisory checks for astronomical plausibility. Never raises."""
        issues: List[str] = []
        ctype1, ctype2 = (c.upper() for c in self.coordinate_types)
        if "RA" not in ctype1 and "GLON" not in ctype1:
            issues.append(f"Unexpected longitude coordinate type: {self.coordinate_types[0]}")
        if "DEC" not in ctype2 and "GLAT" not in ctype2:
            issues.append(f"Unexpected latitude coordinate type: {self.coordinate_types[1]}")

        scale = self.pixel_scale_arcsec
        for axis, value in (("X", scale.x), ("Y", scale.y)):
            if value < limits.min_arcsec_per_pixel or value > limits.max_arcsec_per_pixel:
                issues.append(f"Unusual pixel scale {axis}: {value:.3f} arcsec/pixel")

        ra0, dec0 = self.reference_value
        if ra0 < 0 or ra0 >= 360:
            issues.append(f"RA reference value outside valid range [0,360): {ra0}")
        if dec0 < -90 or dec0 > 90:
            issues.append(f"Dec reference value outside valid range [-90,90]: {dec0}")

        if self.projection is not None and not self.is_tan:
            issues.append(f"Unsupported projection {self.projection}: coordinates use a linear approximation")
        return issues
