"""Error types shared by the session core.

Two tiers exist. ``DomainError`` carries one of a closed set of
user-actionable kinds with a fixed message. Everything else derived from
``D2JError`` is an internal failure whose details stay server-side unless the
configuration says otherwise.
"""

from __future__ import annotations

from enum import Enum


class DomainErrorKind(str, Enum):
    """Closed set of classified, caller-actionable failures."""

    DATABASE_DOES_NOT_EXIST = "database_does_not_exist"
    INVALID_USERNAME = "invalid_username"
    INVALID_HOST = "invalid_host"
    INVALID_PORT = "invalid_port"
    NO_ACCESS = "no_access"
    SESSION_EXPIRED = "session_expired"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES: dict[DomainErrorKind, str] = {
    DomainErrorKind.DATABASE_DOES_NOT_EXIST: (
        "The entered database does not exist. Please verify the database name and try again."
    ),
    DomainErrorKind.INVALID_USERNAME: "Invalid username. Please check and try again.",
    DomainErrorKind.INVALID_HOST: "Invalid database host. Please check and try again.",
    DomainErrorKind.INVALID_PORT: "Invalid port number. Please check and try again.",
    DomainErrorKind.NO_ACCESS: (
        "Access denied. Please verify your credentials and connection settings."
    ),
    DomainErrorKind.SESSION_EXPIRED: "Connection session time expired.",
}

INTERNAL_ERROR_MESSAGE = "Something went wrong on our side. Please try again."


class D2JError(RuntimeError):
    """Base class for every error raised by d2j."""


class DomainError(D2JError):
    """Raised for expected outcomes the caller can act on."""

    def __init__(self, kind: DomainErrorKind) -> None:
        super().__init__(kind.message)
        self.kind = kind

    def __repr__(self) -> str:
        return f"DomainError({self.kind.name})"


class EncryptionFailure(D2JError):
    """Raised when credentials cannot be encrypted."""


class DecryptionFailure(D2JError):
    """Raised when ciphertext is malformed, tampered with, or the secret is wrong."""


class KeyGenerationFailure(D2JError):
    """Raised when a session key cannot be produced."""


class EntryNotFound(D2JError):
    """Raised by session stores when a key is absent, deleted or expired."""


class StoreWriteFailure(D2JError):
    """Raised when the session store rejects a write or delete."""


class StoreReadFailure(D2JError):
    """Raised when the session store cannot be read for reasons other than absence."""


class InvalidSessionDuration(D2JError):
    """Raised when a session duration string cannot be parsed."""


class CredentialFormatError(D2JError):
    """Raised when decrypted credentials do not deserialize into connection parameters."""


class ConnectFailure(D2JError):
    """Raised when a database connection fails for an unclassified reason."""


class CloseFailure(D2JError):
    """Raised when a database connection cannot be closed cleanly."""


class QueryFailure(D2JError):
    """Raised when a statement fails to run."""


def is_expected(exc: BaseException) -> bool:
    """Return ``True`` for errors the caller may see verbatim."""

    return isinstance(exc, DomainError)


def describe(exc: BaseException, *, send_details: bool = False) -> str:
    """Caller-facing text for *exc*."""

    if isinstance(exc, DomainError):
        return exc.kind.message
    if send_details:
        return str(exc) or type(exc).__name__
    return INTERNAL_ERROR_MESSAGE


__all__ = [
    "CloseFailure",
    "ConnectFailure",
    "CredentialFormatError",
    "D2JError",
    "DecryptionFailure",
    "DomainError",
    "DomainErrorKind",
    "EncryptionFailure",
    "EntryNotFound",
    "INTERNAL_ERROR_MESSAGE",
    "InvalidSessionDuration",
    "KeyGenerationFailure",
    "QueryFailure",
    "StoreReadFailure",
    "StoreWriteFailure",
    "describe",
    "is_expected",
]
