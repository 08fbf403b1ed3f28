"""Tip domain errors.

Every failure on the way from a /tip command to the ledger is one of these.
The orchestrator turns them into a terminal Outcome; none of them should ever
escape to the chat layer.
"""

from __future__ import annotations


class TipError(Exception):
    """Base class for tip domain errors."""

    code = "tip_error"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.__class__.__name__)
        if code is not None:
            self.code = code


class ValidationError(TipError):
    """Raised when a request is malformed. No ledger contact was made."""

    code = "invalid_request"


class BusyError(TipError):
    """Raised when another transfer is already in flight."""

    code = "busy"


class QueryError(TipError):
    """Raised when a ledger read failed or timed out."""

    code = "query_failed"


class SubmitError(TipError):
    """Raised when signing or broadcasting failed before a tx hash existed."""

    code = "submit_failed"


class ConfirmError(TipError):
    """Raised when a submitted transaction could not be confirmed.

    The transaction may still land; callers must not resend it.
    """

    code = "confirm_failed"

    def __init__(self, message: str = "", *, tx_hash: str | None = None, code: str | None = None):
        super().__init__(message, code=code)
        self.tx_hash = tx_hash
