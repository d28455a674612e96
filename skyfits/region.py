import logging
from dataclasses import dataclass
from typing import Optional

from .byteorder import Buffer, SampleType
from .errors import CorruptedData, RegionOutOfBounds
from .scaling import PixelScaling, scale_buffer


@dataclass(frozen=True)
class PixelRegion:
    """Rectangle of pixels: top-left corner (x, y) and size, 0-based."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if min(self.x, self.y, self.width, self.height) < 0:
            raise ValueError(f"region components must be non-negative: {self}")

    @classmethod
    def full_frame(cls, width: int, height: int) -> "PixelRegion":
        return cls(0, 0, width, height)

    def fits_within(self, image_width: int, image_height: int) -> bool:
        return self.x + self.width <= image_width and self.y + self.height <= image_height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


def parse_region_arg(arg: Optional[str]) -> Optional[PixelRegion]:
    """Parse a region argument of the form 'x,y,width,height'.

    Args:
        arg: String like '1454,1454,100,100' or None.

    Returns:
        PixelRegion or None if arg is None/empty.
    """
    if arg is None or str(arg).strip() == "":
        return None
    parts = str(arg).split(",")
    if len(parts) != 4:
        raise ValueError("region must have four comma-separated integers: x,y,width,height")
    try:
        x, y, width, height = (int(p) for p in parts)
    except ValueError as exc:
        raise ValueError("region coordinates must be integers") from exc
    return PixelRegion(x, y, width, height)


def extract_region(
    native: Buffer,
    image_width: int,
    image_height: int,
    sample_type: SampleType,
    region: PixelRegion,
    scaling: PixelScaling = PixelScaling(),
) -> bytes:
    """Copy a sub-rectangle out of a row-major, host-order image buffer.

    Rows of a sub-region are not contiguous in the source, so each row's byte
    range is copied separately. The result goes through the same BZERO/BSCALE
    transform as a whole-image read, so a full-frame region is byte-identical
    to it.

    Raises:
        RegionOutOfBounds: unless the region lies fully inside the image.
        CorruptedData: if the buffer is shorter than the image it describes.
    """
    if not region.fits_within(image_width, image_height):
        raise RegionOutOfBounds(region)

    bps = sample_type.bytes_per_sample
    row_stride = image_width * bps
    view = memoryview(native).cast("B")
    rows = []
    for row in range(region.y, region.y + region.height):
        start = row * row_stride + region.x * bps
        end = start + region.width * bps
        if end > len(view):
            raise CorruptedData(f"row {row} ends at byte {end} beyond buffer of {len(view)} bytes")
        rows.append(view[start:end])

    logging.debug("Extracted region %s (%d rows)", region, len(rows))
    return scale_buffer(b"".join(rows), sample_type, scaling)
