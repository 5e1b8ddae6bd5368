"""Classification of connect-time failures into domain errors."""

from __future__ import annotations

import errno
import socket

from .errors import DomainErrorKind

# SQLSTATE codes mapped to PostgreSQL condition names.
CONDITION_NAMES: dict[str, str] = {
    "3D000": "invalid_catalog_name",
    "28000": "invalid_authorization_specification",
    "28P01": "invalid_password",
}

_NO_ACCESS_MARKER = "no pg_hba.conf entry for host"

_HOST_MARKERS = (
    "no such host",
    "name or service not known",
    "nodename nor servname provided",
    "temporary failure in name resolution",
    "getaddrinfo failed",
)

_PORT_MARKERS = (
    "connection refused",
    "connect call failed",
)


def condition_name(exc: BaseException) -> str | None:
    """Return the PostgreSQL condition name carried by a driver error, if any."""

    sqlstate = getattr(exc, "sqlstate", None)
    if not isinstance(sqlstate, str):
        return None
    return CONDITION_NAMES.get(sqlstate, sqlstate)


def classify_connect_error(exc: BaseException) -> DomainErrorKind | None:
    """Map a failed connect attempt to a domain error kind.

    Driver error codes are inspected first, then network errors. ``None``
    means the failure is not one the caller can act on.
    """

    code = condition_name(exc)
    if code == "invalid_catalog_name":
        return DomainErrorKind.DATABASE_DOES_NOT_EXIST
    if code == "invalid_authorization_specification":
        if _NO_ACCESS_MARKER in str(exc):
            return DomainErrorKind.NO_ACCESS
        return DomainErrorKind.INVALID_USERNAME
    if code is not None:
        return None

    for error in _network_errors(exc):
        if isinstance(error, socket.gaierror):
            return DomainErrorKind.INVALID_HOST
        if isinstance(error, ConnectionRefusedError) or error.errno == errno.ECONNREFUSED:
            return DomainErrorKind.INVALID_PORT
        text = str(error).lower()
        if any(marker in text for marker in _HOST_MARKERS):
            return DomainErrorKind.INVALID_HOST
        if any(marker in text for marker in _PORT_MARKERS):
            return DomainErrorKind.INVALID_PORT
    return None


def _network_errors(exc: BaseException) -> list[OSError]:
    """Collect OSErrors from *exc*, its cause chain and exception groups."""

    found: list[OSError] = []
    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, OSError):
            found.append(current)
        if isinstance(current, BaseExceptionGroup):
            pending.extend(current.exceptions)
        for linked in (current.__cause__, current.__context__):
            if linked is not None:
                pending.append(linked)
    return found


__all__ = ["CONDITION_NAMES", "classify_connect_error", "condition_name"]
