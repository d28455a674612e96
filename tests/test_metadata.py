import logging

import pytest

from skyfits.byteorder import SampleType
from skyfits.errors import MissingRequiredKeyword, UnsupportedBitDepth
from skyfits.header import build_header, parse_header
from skyfits.metadata import build_metadata, extract_wcs, projection_code

BASE = [("SIMPLE", True), ("BITPIX", 16), ("NAXIS", 2), ("NAXIS1", 3008), ("NAXIS2", 2008)]


def _metadata(cards, **kwargs):
    header, _ = parse_header(build_header(cards))
    return build_metadata(header, **kwargs)


def test_structural_fields():
    meta = _metadata(BASE + [("BZERO", 32768.0)], source_name="light.fits", file_size=123)
    assert meta.width == 3008
    assert meta.height == 2008
    assert meta.sample_type is SampleType.INT16
    assert meta.bytes_per_sample == 2
    assert meta.payload_bytes == 3008 * 2008 * 2
    assert meta.is_signed_integer
    assert not meta.is_floating_point
    assert meta.scaling.bzero == 32768.0
    assert meta.scaling.bscale == 1.0
    assert meta.source_name == "light.fits"
    assert meta.file_size == 123
    assert meta.megapixels == pytest.approx(6.040064)
    assert meta.aspect_ratio == pytest.approx(3008 / 2008)
    assert str(meta) == "FITS 3008x2008 (6.0MP, int16)"


def test_physical_value_through_metadata():
    meta = _metadata(BASE + [("BZERO", 32768.0), ("BSCALE", 1.0)])
    assert meta.physical_value(-32768) == 0
    assert meta.physical_value(32767) == 65535


@pytest.mark.parametrize("bitpix, sample_type", [(b, SampleType(b)) for b in (8, 16, 32, -32, -64)])
def test_every_bitpix(bitpix, sample_type):
    cards = [("SIMPLE", True), ("BITPIX", bitpix), ("NAXIS", 2), ("NAXIS1", 4), ("NAXIS2", 2)]
    meta = _metadata(cards)
    assert meta.sample_type is sample_type
    assert meta.payload_bytes == 8 * sample_type.bytes_per_sample


@pytest.mark.parametrize("missing", ["NAXIS", "BITPIX", "NAXIS1", "NAXIS2"])
def test_required_keywords(missing):
    cards = [card for card in BASE if card[0] != missing]
    with pytest.raises(MissingRequiredKeyword) as excinfo:
        _metadata(cards)
    assert excinfo.value.name == missing
    assert missing in str(excinfo.value)


def test_unknown_bitpix_is_rejected():
    with pytest.raises(UnsupportedBitDepth):
        _metadata([("SIMPLE", True), ("BITPIX", 24), ("NAXIS", 1), ("NAXIS1", 4)])


def test_one_dimensional_and_empty_images():
    line = _metadata([("SIMPLE", True), ("BITPIX", 8), ("NAXIS", 1), ("NAXIS1", 7)])
    assert (line.width, line.height) == (7, 1)
    empty = _metadata([("SIMPLE", True), ("BITPIX", 8), ("NAXIS", 0)])
    assert (empty.width, empty.height, empty.payload_bytes) == (0, 0, 0)
    assert empty.aspect_ratio == 1.0


def test_cube_plane_count():
    meta = _metadata(
        [("SIMPLE", True), ("BITPIX", 8), ("NAXIS", 3), ("NAXIS1", 4), ("NAXIS2", 3), ("NAXIS3", 3)]
    )
    assert meta.plane_count == 3
    assert meta.total_pixels == 12
    assert meta.payload_bytes == 36


def test_observation_keywords():
    meta = _metadata(
        BASE
        + [
            ("TELESCOP", "Esprit 100"),
            ("INSTRUME", "ASI2600MM"),
            ("OBJECT", "M 101"),
            ("FILTER", "Ha"),
            ("DATE-OBS", "2024-04-10T22:01:05"),
            ("EXPTIME", 300.0),
            ("EXPOSURE", 10.0),
            ("CCD-TEMP", -10.0),
            ("GAIN", 100.0),
            ("XBINNING", 2),
            ("YBINNING", 2),
        ]
    )
    obs = meta.observation
    assert obs.telescope == "Esprit 100"
    assert obs.instrument == "ASI2600MM"
    assert obs.object == "M 101"
    assert obs.filter == "Ha"
    assert obs.date_obs.hour == 22
    assert obs.exposure_time == 300.0
    assert obs.temperature == -10.0
    assert obs.gain == 100.0
    assert (obs.binning.horizontal, obs.binning.vertical) == (2, 2)
    assert meta.has_astronomical_info
    assert meta.completeness_score == 1.0


def test_exposure_and_temperature_aliases():
    obs = _metadata(BASE + [("EXPOSURE", 60.0), ("TEMP", -5.5)]).observation
    assert obs.exposure_time == 60.0
    assert obs.temperature == -5.5


def test_optional_fields_default():
    meta = _metadata(BASE)
    assert meta.observation.telescope is None
    assert meta.observation.binning.horizontal == 1
    assert not meta.has_astronomical_info
    assert meta.completeness_score == 0.0
    assert not meta.has_wcs


def test_custom_metadata():
    meta = _metadata(BASE + [("SWCREATE", "N.I.N.A.")])
    assert meta.custom_value("swcreate") == "N.I.N.A."
    assert meta.custom_metadata["NAXIS1"] == "3008"


def test_wcs_from_cdelt(wcs_cards):
    meta = _metadata(BASE + wcs_cards + [("CROTA2", 12.0)])
    wcs = meta.wcs
    assert meta.has_wcs
    assert tuple(wcs.reference_pixel) == (512.5, 512.5)
    assert tuple(wcs.reference_value) == (185.0, 12.0)
    assert tuple(wcs.pixel_scale) == (-0.0002777, 0.0002777)
    assert wcs.coordinate_types == ("RA---TAN", "DEC--TAN")
    assert wcs.projection == "TAN"
    assert wcs.coordinate_system == "ICRS"
    assert wcs.epoch == 2000.0
    assert wcs.rotation_angle == 12.0
    assert wcs.transform_matrix is None


@pytest.mark.parametrize("missing", ["CRPIX1", "CRPIX2", "CRVAL1", "CRVAL2"])
def test_wcs_requires_reference_keywords(wcs_cards, missing):
    cards = [card for card in wcs_cards if card[0] != missing]
    assert _metadata(BASE + cards).wcs is None


def test_cd_matrix_is_authoritative(wcs_cards):
    cd = [("CD1_1", -0.0005), ("CD1_2", 0.0001), ("CD2_1", 0.0001), ("CD2_2", 0.0005)]
    wcs = _metadata(BASE + wcs_cards + cd).wcs
    matrix = wcs.transform_matrix
    assert (matrix.cd11, matrix.cd12, matrix.cd21, matrix.cd22) == (-0.0005, 0.0001, 0.0001, 0.0005)
    assert wcs.pixel_matrix is matrix


def test_partial_cd_matrix_and_cdelt_fallback():
    cards = [("CRPIX1", 1.0), ("CRPIX2", 1.0), ("CRVAL1", 10.0), ("CRVAL2", 20.0), ("CD1_1", -0.001), ("CD2_2", 0.001)]
    wcs = _metadata(BASE + cards).wcs
    assert wcs.transform_matrix.cd12 == 0.0
    assert tuple(wcs.pixel_scale) == (-0.001, 0.001)
    assert wcs.coordinate_types == ("RA", "DEC")
    assert wcs.projection is None


def test_wcs_alias_keywords(wcs_cards):
    cards = [c for c in wcs_cards if c[0] not in ("RADESYS", "EQUINOX")]
    wcs = _metadata(BASE + cards + [("RADECSYS", "FK5"), ("EPOCH", 1950.0), ("CROTA1", 3.0)]).wcs
    assert wcs.coordinate_system == "FK5"
    assert wcs.equinox == 1950.0
    assert wcs.rotation_angle == 3.0


def test_wcs_without_scale_is_ignored(caplog):
    cards = [("CRPIX1", 1.0), ("CRPIX2", 1.0), ("CRVAL1", 10.0), ("CRVAL2", 20.0)]
    header, _ = parse_header(build_header(BASE + cards))
    with caplog.at_level(logging.WARNING):
        assert extract_wcs(header) is None
    assert "usable pixel scale" in caplog.text


def test_unparsable_reference_value_drops_wcs(wcs_cards):
    cards = [c for c in wcs_cards if c[0] != "CRVAL1"] + [("CRVAL1", "12 30 00")]
    assert _metadata(BASE + cards).wcs is None


@pytest.mark.parametrize(
    "extra",
    [
        [("CDELT1", "NAN")],
        [("CDELT2", "INF")],
        [("CD1_1", "NaN"), ("CD1_2", 0.0), ("CD2_1", 0.0), ("CD2_2", 0.0002777)],
    ],
)
def test_non_finite_scale_drops_wcs(wcs_cards, extra, caplog):
    overridden = {card[0] for card in extra}
    cards = [c for c in wcs_cards if c[0] not in overridden] + extra
    header, _ = parse_header(build_header(BASE + cards))
    with caplog.at_level(logging.WARNING):
        assert extract_wcs(header) is None
    assert "non-finite CDELT or CD matrix" in caplog.text


@pytest.mark.parametrize(
    "ctype, code",
    [
        ("RA---TAN", "TAN"),
        ("DEC--TAN", "TAN"),
        ("RA---TAN-SIP", "TAN"),
        ("GLON-CAR", "CAR"),
        ("RA", None),
        ("", None),
        (None, None),
        ("LINEAR  ", None),
    ],
)
def test_projection_code(ctype, code):
    assert projection_code(ctype) == code
