from __future__ import annotations


class LedgerError(RuntimeError):
    """Base class for failures surfaced to ledger callers.

    Every subclass carries a stable `kind` string so host adapters can shape
    a uniform failure response without matching on exception classes.
    """

    kind = "LedgerError"


class InvalidArgumentsError(LedgerError):
    """Raised when an operation receives the wrong number of arguments."""

    kind = "InvalidArguments"


class UnknownOperationError(LedgerError):
    """Raised when an operation name is not part of the requested namespace."""

    kind = "UnknownOperation"


class StoreUnavailableError(LedgerError):
    """Raised when the underlying key-value substrate fails a get or put."""

    kind = "StoreUnavailable"


class CorruptRecordError(LedgerError):
    """Raised when a stored record collection cannot be decoded."""

    kind = "CorruptRecord"


class WriteConflictError(LedgerError):
    """Raised when a conditional put finds the key changed since it was read."""

    kind = "WriteConflict"
