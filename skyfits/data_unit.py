import logging
from typing import List, Tuple, Union

from .byteorder import SampleType
from .errors import InvalidDataSize, MalformedHeader, MissingRequiredKeyword
from .header import BLOCK_SIZE, FitsHeader


def required_int(header: FitsHeader, keyword: str) -> int:
    """Return an integer keyword, raising MissingRequiredKeyword if absent or unparsable."""
    value = header.get_int(keyword)
    if value is None:
        raise MissingRequiredKeyword(keyword)
    return value


def axis_sizes(header: FitsHeader) -> List[int]:
    """Sizes of NAXIS1..NAXISn in header order."""
    naxis = required_int(header, "NAXIS")
    if naxis < 0:
        raise MalformedHeader(f"negative NAXIS: {naxis}")
    sizes = [required_int(header, f"NAXIS{i}") for i in range(1, naxis + 1)]
    if any(size < 0 for size in sizes):
        raise MalformedHeader(f"negative axis size in {sizes}")
    return sizes


def payload_size(header: FitsHeader) -> int:
    """Number of data bytes described by NAXIS/NAXISn/BITPIX (padding excluded)."""
    axes = axis_sizes(header)
    sample_type = SampleType.from_bitpix(required_int(header, "BITPIX"))
    if not axes:
        return 0
    sample_count = 1
    for size in axes:
        sample_count *= size
    return sample_count * sample_type.bytes_per_sample


def padded_size(size: int) -> int:
    """Round ``size`` up to the next 2880-byte boundary."""
    return -(-size // BLOCK_SIZE) * BLOCK_SIZE


def read_data_unit(
    buffer: Union[bytes, bytearray, memoryview], offset: int, header: FitsHeader
) -> Tuple[bytes, int]:
    """Read the data unit that follows a parsed header.

    Args:
        buffer: Complete FITS file contents.
        offset: Offset returned by :func:`skyfits.header.parse_header`.
        header: The header describing this data unit.

    Returns:
        Tuple of (payload bytes in on-disk byte order, offset past the padding).

    Raises:
        InvalidDataSize: if fewer than the required bytes remain.
        UnsupportedBitDepth: for a BITPIX outside the five FITS types.
    """
    size = payload_size(header)
    available = max(0, len(buffer) - offset)
    if size > available:
        raise InvalidDataSize(expected=size, actual=available)

    payload = bytes(buffer[offset : offset + size])
    end = offset + padded_size(size)
    if end > len(buffer):
        # Truncated padding carries no samples.
        logging.debug("Data unit padding truncated by %d bytes", end - len(buffer))
    logging.debug("Read %d data bytes at offset %d", size, offset)
    return payload, end
