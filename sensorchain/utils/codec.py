"""CSV row codec for sensor log records.

One record per line, four comma-separated fields in fixed order::

    datetime,value,prevHash,entryHash

No quoting is supported: a field that contains the delimiter or a line break
cannot be encoded, and a row that does not split into exactly four fields
cannot be decoded.
"""
from dataclasses import dataclass
from typing import Any, Dict

from sensorchain.ledger.errors import CodecError, ParseError
from sensorchain.utils.chain import is_hash

DELIMITER = ","
HEADER = "datetime,value,prevHash,entryHash"
FIELDS = ("timestamp", "value", "prev_hash", "entry_hash")


@dataclass(frozen=True)
class Record:
    """One committed sensor reading"""

    timestamp: str
    value: str
    prev_hash: str
    entry_hash: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "value": self.value,
            "prev_hash": self.prev_hash,
            "entry_hash": self.entry_hash,
        }


def check_field(name: str, text: str) -> str:
    """Raise CodecError if ``text`` cannot be stored as a single CSV field"""
    if not isinstance(text, str):
        raise CodecError(f"{name} must be a string, got {type(text).__name__}")
    if DELIMITER in text or "\n" in text or "\r" in text:
        raise CodecError(f"{name} must not contain a comma or line break: {text!r}")
    return text


def encode(record: Record) -> str:
    """Render a record as a log row (without trailing newline)"""
    return DELIMITER.join(
        check_field(name, getattr(record, name)) for name in FIELDS
    )


def decode(row: str) -> Record:
    """Parse a log row into a Record.

    Raises:
        ParseError: if the row does not have exactly four fields or a hash
            field is not a well-formed digest.
    """
    parts = row.rstrip("\r\n").split(DELIMITER)
    if len(parts) != len(FIELDS):
        raise ParseError(f"expected {len(FIELDS)} fields, got {len(parts)}")

    timestamp, value, prev_hash, entry_hash = parts
    if not is_hash(prev_hash):
        raise ParseError(f"prevHash is not a digest: {prev_hash!r}")
    if not is_hash(entry_hash):
        raise ParseError(f"entryHash is not a digest: {entry_hash!r}")

    return Record(timestamp=timestamp, value=value, prev_hash=prev_hash, entry_hash=entry_hash)


def is_blank(row: str) -> bool:
    """Blank lines (stray newlines, trailing whitespace) are not records"""
    return not row.strip()
