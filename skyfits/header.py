"""FITS header blocks: 2880-byte blocks of 36 fixed 80-character cards."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import MalformedHeader

BLOCK_SIZE = 2880
CARD_SIZE = 80
CARDS_PER_BLOCK = BLOCK_SIZE // CARD_SIZE

COMMENTARY_KEYWORDS = ("COMMENT", "HISTORY", "")
END_KEYWORD = "END"

_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d")


@dataclass(frozen=True)
class HeaderRecord:
    """One header card: upper-cased keyword, raw value text, optional comment."""

    keyword: str
    value: str
    comment: Optional[str] = None

    @property
    def is_commentary(self) -> bool:
        return self.keyword in COMMENTARY_KEYWORDS


@dataclass(frozen=True)
class FitsHeader:
    """Parsed header: every card in file order plus a unique keyword table.

    The table keeps the last occurrence of a repeated keyword. Commentary
    cards stay available in order through :meth:`commentary`.
    """

    records: Tuple[HeaderRecord, ...] = ()
    table: Dict[str, str] = field(default_factory=dict, compare=False)

    @classmethod
    def from_records(cls, records: Iterable[HeaderRecord]) -> "FitsHeader":
        records = tuple(records)
        table: Dict[str, str] = {}
        for record in records:
            if record.keyword in table and not record.is_commentary:
                logging.warning(
                    "Duplicate header keyword %s: keeping last value %r (was %r)",
                    record.keyword,
                    record.value,
                    table[record.keyword],
                )
            table[record.keyword] = record.value
        return cls(records=records, table=table)

    def __contains__(self, keyword: object) -> bool:
        return isinstance(keyword, str) and keyword.upper() in self.table

    def __getitem__(self, keyword: str) -> str:
        return self.table[keyword.upper()]

    def __iter__(self) -> Iterator[str]:
        return iter(self.table)

    def __len__(self) -> int:
        return len(self.table)

    def keys(self) -> List[str]:
        return list(self.table)

    def items(self) -> List[Tuple[str, str]]:
        return list(self.table.items())

    def get(self, keyword: str, default: Optional[str] = None) -> Optional[str]:
        return self.table.get(keyword.upper(), default)

    def commentary(self, keyword: str = "COMMENT") -> List[str]:
        """All values of a commentary keyword, in file order."""
        keyword = keyword.upper()
        return [r.value for r in self.records if r.keyword == keyword]

    def get_str(self, keyword: str) -> Optional[str]:
        value = self.get(keyword)
        if value is None:
            return None
        return value.strip()

    def get_int(self, keyword: str) -> Optional[int]:
        value = self.get_str(keyword)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logging.warning("Header key %s present but not an integer: %r", keyword, value)
            return None

    def get_float(self, keyword: str) -> Optional[float]:
        value = self.get_str(keyword)
        if value is None:
            return None
        try:
            # Fortran-style exponents are legal in FITS.
            return float(value.replace("D", "E").replace("d", "e"))
        except ValueError:
            logging.warning("Header key %s present but not a float: %r", keyword, value)
            return None

    def get_bool(self, keyword: str) -> Optional[bool]:
        value = self.get_str(keyword)
        if value == "T":
            return True
        if value == "F":
            return False
        if value is not None:
            logging.warning("Header key %s present but not a logical: %r", keyword, value)
        return None

    def get_date(self, keyword: str) -> Optional[datetime]:
        value = self.get_str(keyword)
        if not value:
            return None
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(value, fmt)
            except ValueError:
                continue
        logging.warning("Header key %s present but not a FITS date: %r", keyword, value)
        return None


def _split_value(text: str) -> Tuple[str, Optional[str]]:
    """Split the text after ``=`` into (value, comment).

    A ``/`` inside a quoted string does not start the comment, and doubled
    quotes inside a string stand for a single quote.
    """
    stripped = text.lstrip()
    if stripped.startswith("'"):
        chars: List[str] = []
        i = 1
        closed = False
        while i < len(stripped):
            ch = stripped[i]
            if ch == "'":
                if i + 1 < len(stripped) and stripped[i + 1] == "'":
                    chars.append("'")
                    i += 2
                    continue
                closed = True
                i += 1
                break
            chars.append(ch)
            i += 1
        if not closed:
            logging.warning("Unterminated string value in header card: %r", text)
        rest = stripped[i:]
        slash = rest.find("/")
        comment = rest[slash + 1 :].strip() if slash >= 0 else None
        # Trailing blanks inside a FITS string are not significant.
        return "".join(chars).rstrip(), comment or None

    slash = stripped.find("/")
    if slash < 0:
        return stripped.strip(), None
    comment = stripped[slash + 1 :].strip()
    return stripped[:slash].strip(), comment or None


def parse_card(card: str) -> Optional[HeaderRecord]:
    """Parse a single 80-character card.

    Returns None for a card that carries neither a value nor commentary
    (e.g. a keyword with no ``=``).
    """
    keyword = card[:8].strip().upper()

    if keyword == END_KEYWORD and not card[8:].strip():
        return HeaderRecord(END_KEYWORD, "")

    if keyword in COMMENTARY_KEYWORDS:
        return HeaderRecord(keyword, card[8:].rstrip())

    if card[8:9] == "=":
        value, comment = _split_value(card[9:])
        return HeaderRecord(keyword, value, comment)

    # Non-standard layouts such as HIERARCH: split at the first '='.
    equals = card.find("=")
    if equals < 0:
        logging.debug("Ignoring header card without value indicator: %r", card.rstrip())
        return None
    keyword = card[:equals].strip().upper()
    if keyword.startswith("HIERARCH "):
        keyword = keyword[len("HIERARCH ") :].strip()
    value, comment = _split_value(card[equals + 1 :])
    return HeaderRecord(keyword, value, comment)


def _decode_card(raw: bytes) -> str:
    try:
        return raw.decode("ascii")
    except UnicodeDecodeError as exc:
        raise MalformedHeader(f"non-ASCII bytes in header card {raw!r}") from exc


def parse_header(buffer: Union[bytes, bytearray, memoryview], offset: int = 0) -> Tuple[FitsHeader, int]:
    """Parse header blocks starting at ``offset``.

    Args:
        buffer: Complete FITS file contents.
        offset: Byte offset of the first header block.

    Returns:
        Tuple of (header, offset of the first byte after the block holding END).

    Raises:
        MalformedHeader: if the buffer ends before an END card or a card
            holds non-ASCII bytes.
    """
    data = bytes(buffer)
    records: List[HeaderRecord] = []
    block_start = offset
    while block_start < len(data):
        block = data[block_start : block_start + BLOCK_SIZE]
        for card_start in range(0, len(block), CARD_SIZE):
            card = _decode_card(block[card_start : card_start + CARD_SIZE])
            record = parse_card(card)
            if record is None:
                continue
            if record.keyword == END_KEYWORD:
                header = FitsHeader.from_records(records)
                logging.debug(
                    "Parsed %d header cards (%d keywords) ending in block at byte %d",
                    len(records),
                    len(header),
                    block_start,
                )
                return header, block_start + BLOCK_SIZE
            records.append(record)
        block_start += BLOCK_SIZE

    raise MalformedHeader("END keyword not found")


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return f"{'T' if value else 'F':>20}"
    if isinstance(value, int):
        return f"{value:>20}"
    if isinstance(value, float):
        text = repr(value).upper()
        if "." not in text and "E" not in text and "N" not in text:
            text += "."
        return f"{text:>20}"
    escaped = str(value).replace("'", "''")
    return f"'{escaped:<8}'"


def format_card(keyword: str, value: Any = None, comment: Optional[str] = None) -> str:
    """Render one 80-column header card.

    Commentary keywords (COMMENT, HISTORY, blank) take ``value`` as free text.
    """
    keyword = keyword.upper()
    if len(keyword) > 8:
        raise ValueError(f"keyword longer than 8 characters: {keyword}")
    if keyword in COMMENTARY_KEYWORDS or keyword == END_KEYWORD:
        card = f"{keyword:<8}{'' if value is None else value}"
    else:
        card = f"{keyword:<8}= {_format_value(value)}"
        if comment:
            card += f" / {comment}"
    if len(card) > CARD_SIZE:
        raise ValueError(f"card longer than {CARD_SIZE} characters: {card!r}")
    return f"{card:<{CARD_SIZE}}"


def build_header(cards: Iterable[Sequence[Any]]) -> bytes:
    """Build complete header blocks (END included) from card tuples.

    Each item is ``(keyword, value)`` or ``(keyword, value, comment)``.
    """
    text = "".join(format_card(*card) for card in cards) + format_card(END_KEYWORD)
    raw = text.encode("ascii")
    return pad_to_block(raw, fill=b" ")


def pad_to_block(data: bytes, fill: bytes = b"\0") -> bytes:
    """Pad ``data`` to a whole number of 2880-byte blocks."""
    remainder = len(data) % BLOCK_SIZE
    if remainder == 0:
        return data
    return data + fill * (BLOCK_SIZE - remainder)
