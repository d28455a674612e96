"""Primary-HDU image facade over an in-memory FITS buffer."""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .bayer import BayerPattern, demosaic_bilinear, detect_bayer_pattern, has_color_filter_array
from .byteorder import Buffer, native_samples, to_native
from .data_unit import read_data_unit
from .errors import DemosaicNotSupported
from .header import parse_header
from .histogram import HistogramStatistics, compute_histogram
from .metadata import ImageMetadata, build_metadata
from .region import PixelRegion, extract_region
from .scaling import scale_buffer


def read_metadata(data: Buffer, source_name: Optional[str] = None) -> ImageMetadata:
    """Parse only the primary header of a FITS buffer."""
    header, _ = parse_header(data)
    return build_metadata(header, source_name=source_name, file_size=len(data))


@dataclass(frozen=True)
class FitsImage:
    """A decoded primary HDU: metadata plus host-order raw samples.

    ``native_data`` holds the stored (unscaled) samples of the whole data
    unit in host byte order. Pixel accessors work on the first 2-D plane.
    """

    metadata: ImageMetadata
    native_data: bytes

    @classmethod
    def from_bytes(cls, data: Buffer, source_name: Optional[str] = None) -> "FitsImage":
        """Decode the primary HDU of a complete FITS file held in memory.

        Raises:
            FitsError: any subclass; no partially decoded image is returned.
        """
        header, offset = parse_header(data)
        metadata = build_metadata(header, source_name=source_name, file_size=len(data))
        payload, _ = read_data_unit(data, offset, header)
        native = to_native(payload, metadata.sample_type)
        if metadata.plane_count > 1:
            logging.warning(
                "Image has %d dimensions; pixel access uses the first of %d planes.",
                metadata.naxis,
                metadata.plane_count,
            )
        logging.info(
            "Loaded %s image (H,W)=(%d,%d) from %s",
            metadata.sample_type.name.lower(),
            metadata.height,
            metadata.width,
            source_name or "<buffer>",
        )
        return cls(metadata=metadata, native_data=native)

    @property
    def _plane(self) -> bytes:
        meta = self.metadata
        return self.native_data[: meta.width * meta.height * meta.bytes_per_sample]

    def pixel_data(self, region: Optional[PixelRegion] = None) -> bytes:
        """Physical-value samples (host order, declared type) for the image or a region."""
        meta = self.metadata
        if region is None:
            return scale_buffer(self._plane, meta.sample_type, meta.scaling)
        return extract_region(self._plane, meta.width, meta.height, meta.sample_type, region, meta.scaling)

    def pixel_array(self, region: Optional[PixelRegion] = None) -> np.ndarray:
        """:meth:`pixel_data` as a (height, width) array."""
        meta = self.metadata
        samples = native_samples(self.pixel_data(region), meta.sample_type)
        if region is None:
            return samples.reshape(meta.height, meta.width)
        return samples.reshape(region.height, region.width)

    def histogram(self) -> HistogramStatistics:
        return compute_histogram(self.pixel_data(), self.metadata.sample_type)

    def bayer_pattern(self) -> Optional[BayerPattern]:
        return detect_bayer_pattern(self.metadata.header)

    def supports_demosaic(self) -> bool:
        return has_color_filter_array(self.metadata.header)

    def demosaic(self, pattern: Optional[BayerPattern] = None) -> np.ndarray:
        """Bilinear RGB reconstruction of a colour-filter-array frame.

        Args:
            pattern: Override for the CFA layout; defaults to the header's.

        Raises:
            DemosaicNotSupported: if the header advertises no CFA or no layout
                can be determined.
        """
        if not self.supports_demosaic():
            raise DemosaicNotSupported()
        pattern = pattern or self.bayer_pattern()
        if pattern is None:
            raise DemosaicNotSupported("Bayer layout not recorded in header")
        if self.metadata.height < 2 or self.metadata.width < 2:
            raise DemosaicNotSupported("mosaic smaller than one 2x2 cell")
        return demosaic_bilinear(self.pixel_array(), pattern)
