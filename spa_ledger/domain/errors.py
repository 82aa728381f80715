# spa_ledger/domain/errors.py
"""
Named failures raised by the ledger engine.

The API layer maps them onto HTTP outcomes:

    BillNotFoundError       -> 404
    BillValidationError     -> 400
    InvalidTransitionError  -> 400
    VersionConflictError    -> 409
    RemoteUnavailableError  -> 502  (LinesWriteError included)
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every ledger failure."""


class BillNotFoundError(LedgerError):
    """Key resolves in neither the index nor the fallback scan."""

    def __init__(self, key: str, message: str | None = None):
        super().__init__(message or f"Bill not found: {key}")
        self.key = key


class InvalidTransitionError(LedgerError):
    """Mutation attempted on a bill whose status does not allow it."""


class BillValidationError(LedgerError):
    """Malformed patch or totals input."""


class VersionConflictError(LedgerError):
    """The stored record changed since the caller loaded it."""

    def __init__(self, key: str, expected: int, actual: int):
        super().__init__(
            f"Bill {key} was modified concurrently (expected version {expected}, found {actual})"
        )
        self.key = key
        self.expected = expected
        self.actual = actual


class RemoteUnavailableError(LedgerError):
    """The backing spreadsheet call itself failed (network, quota, auth)."""


class LinesWriteError(RemoteUnavailableError):
    """The bill was finalized but its Lines rows could not be appended."""

    def __init__(self, bill_no: str):
        super().__init__(f"Bill {bill_no} was finalized but its line rows were not written")
        self.key = bill_no
