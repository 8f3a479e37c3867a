"""Error taxonomy raised by the mutation layer.

All errors propagate untouched out of the core; only the transport layer
(``musty.server``) turns them into error responses, keyed by ``code``.
"""

from __future__ import annotations


class MustyError(Exception):
    """Base class for typed failures surfaced to the caller."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MustyError):
    """Malformed input, e.g. an email that is not an address."""

    code = "validation_error"


class ConflictError(MustyError):
    """A uniqueness constraint would be violated."""

    code = "conflict"


class NotFoundError(MustyError):
    """An entity the operation requires does not exist."""

    code = "not_found"


class AuthError(MustyError):
    """Supplied credential does not match the stored one."""

    code = "auth_error"
