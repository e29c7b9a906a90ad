# pbvault/core/errors.py

BAD_INPUT = "bad-input"
FORBIDDEN = "forbidden"
NOT_FOUND = "not-found"
UPSTREAM_FAILURE = "upstream-failure"


class PasteError(Exception):
    """Base class for every failure the paste engine reports."""

    status = UPSTREAM_FAILURE


class ValidationFailure(PasteError):
    """Bad or out-of-range input. Never retried."""

    status = BAD_INPUT


class DuplicateShortId(ValidationFailure):
    """The store already holds a live record with this short id."""


class AuthFailure(PasteError):
    """Wrong passphrase or master key."""

    status = FORBIDDEN


class NotFound(PasteError):
    status = NOT_FOUND


class NotAvailable(NotFound):
    """Absent, expired or held for verification. Callers cannot tell which."""


class ConnectionFailure(PasteError):
    """Backing store unset, unreachable or past its deadline."""

    status = UPSTREAM_FAILURE


class RecordNotMatched(ConnectionFailure):
    """An update matched no record."""


class IntegrityFailure(PasteError):
    """Ciphertext could not be authenticated or decoded."""

    status = FORBIDDEN
