"""Ledger exceptions"""


class LedgerError(Exception):
    """Base class for all ledger errors"""


class StorageError(LedgerError):
    """Durable storage unavailable or a write failed.

    Raised by append/reset/recover; the operation is never reported as done.
    """


class CodecError(LedgerError, ValueError):
    """A field cannot be written to a log row (contains the delimiter or a line break)"""


class ParseError(LedgerError, ValueError):
    """A persisted row does not decode to a record"""


class RecoveryError(LedgerError):
    """recover() was called but the trust anchor is not stale"""


class TipMismatchError(LedgerError):
    """The log tip does not match the trust anchor, so an append would hide the divergence.

    Raised instead of appending when the log is missing, its tail was removed
    or replaced, or the last append still awaits recover().
    """
