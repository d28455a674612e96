"""
Inspect a FITS image: header summary, WCS lookups, region and histogram statistics.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import astropy.units as u
from astropy.coordinates import Angle

from .diagnostics import save_histogram
from .errors import FitsError
from .histogram import HistogramParams
from .image import FitsImage
from .metadata import ImageMetadata
from .region import parse_region_arg
from .wcs import WCSValidationLimits

IMPORTANT_KEYS = {
    "TELESCOP": "Telescope",
    "INSTRUME": "Instrument",
    "OBSERVER": "Observer",
    "OBJECT": "Object",
    "FILTER": "Filter",
    "DATE-OBS": "Date",
    "EXPTIME": "Exposure (s)",
    "GAIN": "Gain",
    "CCD-TEMP": "Sensor temperature (C)",
    "XBINNING": "Binning X",
    "YBINNING": "Binning Y",
}


def setup_logging(level: str = "INFO") -> None:
    """Configure basic logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(message)s",
    )


def parse_pair(arg: Optional[str], name: str) -> Optional[Tuple[float, float]]:
    """Parse 'a,b' into two floats."""
    if arg is None or str(arg).strip() == "":
        return None
    parts = str(arg).split(",")
    if len(parts) != 2:
        raise ValueError(f"{name} must have two comma-separated numbers")
    try:
        a, b = (float(p) for p in parts)
    except ValueError as exc:
        raise ValueError(f"{name} values must be numbers") from exc
    return a, b


def format_sky(ra: float, dec: float) -> str:
    """RA/Dec in degrees and sexagesimal."""
    ra_hms = Angle(ra, unit=u.deg).to_string(unit=u.hourangle, sep=":", precision=2, pad=True)
    dec_dms = Angle(dec, unit=u.deg).to_string(unit=u.deg, sep=":", precision=1, alwayssign=True, pad=True)
    return f"RA={ra:.6f} Dec={dec:+.6f} ({ra_hms} {dec_dms})"


def describe_metadata(metadata: ImageMetadata, verbose: bool = False) -> List[str]:
    lines = [
        f"File:        {metadata.source_name}",
        f"Size:        {metadata.file_size} bytes",
        f"NAXIS:       {metadata.naxis} {metadata.axis_sizes}",
        f"BITPIX:      {metadata.bitpix} ({metadata.sample_type.name.lower()})",
        f"BZERO/BSCALE: {metadata.scaling.bzero:g} / {metadata.scaling.bscale:g}",
        "-" * 70,
    ]
    found_any = False
    for key, description in IMPORTANT_KEYS.items():
        if key in metadata.header:
            lines.append(f"{description:30s} = {metadata.header[key]}")
            found_any = True
    if not found_any:
        lines.append("No standard observatory keywords found")
    if verbose:
        lines.append("-" * 70)
        lines.extend(f"{record.keyword:8s} = {record.value}" for record in metadata.header.records)
    lines.append(f"Header keywords: {len(metadata.header)}")
    return lines


def describe_wcs(metadata: ImageMetadata, limits: WCSValidationLimits) -> List[str]:
    wcs = metadata.wcs
    if wcs is None:
        return ["WCS: none"]
    scale = wcs.pixel_scale_arcsec
    fov = wcs.field_of_view(metadata.width, metadata.height)
    lines = [
        f"WCS:         {wcs.coordinate_types[0]} / {wcs.coordinate_types[1]} "
        f"({wcs.coordinate_system or 'unknown frame'}, equinox {wcs.epoch:g})",
        f"Reference:   {format_sky(*wcs.reference_value)} at pixel {tuple(wcs.reference_pixel)}",
        f"Pixel scale: {scale.x:.3f} x {scale.y:.3f} arcsec/pixel",
        f"FOV:         {fov.width * 60:.2f}' x {fov.height * 60:.2f}' (diagonal {fov.diagonal * 60:.2f}')",
    ]
    if metadata.width and metadata.height:
        center = wcs.world_coordinates((metadata.width - 1) / 2.0, (metadata.height - 1) / 2.0)
        lines.append(f"Center:      {format_sky(*center)}")
    lines.extend(f"Warning:     {issue}" for issue in wcs.validate(limits))
    return lines


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Inspect a FITS image: metadata, WCS and pixel statistics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  skyfits light.fits
  skyfits light.fits --verbose --pixel 100,200
  skyfits light.fits --region 1454,1454,100,100 --histogram-plot hist.png
        """,
    )
    parser.add_argument("fits_file", type=str, help="Path to FITS file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print every header card.")
    parser.add_argument("--region", type=str, default="", help="Region as 'x,y,width,height' (0-based).")
    parser.add_argument("--pixel", type=str, default="", help="0-based pixel 'x,y' to convert to RA/Dec.")
    parser.add_argument("--sky", type=str, default="", help="'ra,dec' in degrees to convert to a pixel.")
    parser.add_argument("--histogram-plot", type=str, default="", help="Save a histogram plot to this path.")
    parser.add_argument("--plot-bins", type=int, default=256, help="Histogram plot bin count.")
    parser.add_argument(
        "--min-scale",
        type=float,
        default=0.1,
        help="Smallest plausible pixel scale (arcsec/pixel) for WCS warnings.",
    )
    parser.add_argument(
        "--max-scale",
        type=float,
        default=600.0,
        help="Largest plausible pixel scale (arcsec/pixel) for WCS warnings.",
    )
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level.")
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> int:
    path = Path(args.fits_file)
    if not path.exists():
        logging.error("FITS file not found: %s", path)
        return 1

    logging.info("Reading FITS file: %s", path)
    image = FitsImage.from_bytes(path.read_bytes(), source_name=path.name)
    metadata = image.metadata
    limits = WCSValidationLimits(min_arcsec_per_pixel=args.min_scale, max_arcsec_per_pixel=args.max_scale)

    print("=" * 70)
    for line in describe_metadata(metadata, args.verbose):
        print(line)
    print("-" * 70)
    for line in describe_wcs(metadata, limits):
        print(line)

    pixel = parse_pair(args.pixel, "pixel")
    if pixel is not None:
        if metadata.wcs is None:
            print("Pixel lookup: image has no WCS")
        else:
            print(f"Pixel {pixel}: {format_sky(*metadata.wcs.world_coordinates(*pixel))}")

    sky = parse_pair(args.sky, "sky")
    if sky is not None:
        if metadata.wcs is None:
            print("Sky lookup: image has no WCS")
        else:
            x, y = metadata.wcs.pixel_coordinates(*sky)
            print(f"Sky {sky}: pixel ({x:.2f}, {y:.2f})")

    region = parse_region_arg(args.region)
    if region is not None:
        values = image.pixel_array(region)
        label = f"Region {region.x},{region.y} {region.width}x{region.height}"
        if values.size:
            print(f"{label}: min={values.min():.6g} max={values.max():.6g} mean={values.mean():.6g}")
        else:
            print(f"{label}: empty")

    stats = image.histogram()
    print("-" * 70)
    print(
        f"Histogram (16-bit): n={stats.count} min={stats.minimum:.0f} max={stats.maximum:.0f} "
        f"mean={stats.mean:.2f} std={stats.standard_deviation:.2f}"
    )
    if args.histogram_plot:
        save_histogram(
            stats,
            Path(args.histogram_plot),
            title=f"{path.name} histogram",
            params=HistogramParams(plot_bins=args.plot_bins),
        )
    if image.supports_demosaic():
        pattern = image.bayer_pattern()
        print(f"Colour filter array: {pattern.value if pattern else 'unknown layout'}")
    print("=" * 70)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    try:
        return run(args)
    except (FitsError, ValueError) as exc:
        logging.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
