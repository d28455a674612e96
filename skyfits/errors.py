from typing import Any


class FitsError(Exception):
    """Base class for every failure raised while decoding a FITS buffer."""


class MissingRequiredKeyword(FitsError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Missing required FITS keyword: {self.name}"


class MalformedHeader(FitsError, ValueError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Malformed FITS header: {detail}")


class InvalidDataSize(FitsError, ValueError):
    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Invalid FITS data size: expected {expected} bytes, got {actual}")


class UnsupportedBitDepth(FitsError, ValueError):
    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Unsupported FITS BITPIX value: {value}")


class RegionOutOfBounds(FitsError, ValueError):
    def __init__(self, region: Any) -> None:
        self.region = region
        super().__init__(f"Requested region {region} is outside image bounds")


class ProjectionSingularity(FitsError, ValueError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Projection singularity: {detail}")


class CorruptedData(FitsError, ValueError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Corrupted FITS data: {detail}")


class DemosaicNotSupported(FitsError):
    def __init__(self, detail: str = "image does not advertise a Bayer pattern") -> None:
        self.detail = detail
        super().__init__(f"Bayer demosaicing is not supported: {detail}")
