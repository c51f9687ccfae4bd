"""Cryptographic hash chaining utilities.

Each sensor reading stores a SHA-256 commitment that covers the previous
entry's hash, the reading's timestamp and its value. Editing any committed
field changes the commitment, which breaks every later link and is detected
by GET /chain/verify.
"""
import hashlib
import re

# Length of a SHA-256 digest rendered as hex
HASH_LENGTH = 64

# Genesis value used as ``prev_hash`` of the very first record. Same shape as
# a real digest so the first link passes the same strict shape check as the
# rest of the chain.
ZERO_HASH = "0" * HASH_LENGTH

_HASH_RE = re.compile(r"^[0-9a-f]{%d}$" % HASH_LENGTH)


def commit(prev_hash: str, timestamp: str, value: str) -> str:
    """Return the SHA-256 hex digest committing a reading to its predecessor.

    The input is ``prev_hash + timestamp + "," + value``. The comma keeps the
    timestamp/value boundary unambiguous because neither field may contain
    the row delimiter.

    Args:
        prev_hash:  entry hash of the immediately preceding record, or
                    ``ZERO_HASH`` for the first record.
        timestamp:  timestamp string of the reading being committed.
        value:      value string of the reading being committed.

    Returns:
        64-character lowercase hex digest.
    """
    raw = f"{prev_hash}{timestamp},{value}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def is_hash(text: str) -> bool:
    """True if ``text`` has the shape of a rendered digest (64 lower-case hex chars)"""
    return bool(_HASH_RE.match(text))
