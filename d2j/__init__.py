"""d2j: export PostgreSQL tables as JSON through short-lived encrypted sessions."""

from __future__ import annotations

from .errors import D2JError, DomainError, DomainErrorKind
from .models import ConnectionParameters, QuerySpec, TableDescriptor
from .session import SessionService

__all__ = [
    "ConnectionParameters",
    "D2JError",
    "DomainError",
    "DomainErrorKind",
    "QuerySpec",
    "SessionService",
    "TableDescriptor",
]

__version__ = "0.1.0"
