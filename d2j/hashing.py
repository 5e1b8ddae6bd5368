"""Session key issuing."""

from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

import bcrypt

from .errors import KeyGenerationFailure

DEFAULT_COST = 14
MIN_COST = 4
MAX_COST = 31


@runtime_checkable
class SessionKeyIssuer(Protocol):
    """Protocol implemented by session key issuers."""

    def issue_key(self) -> str:
        """Return a fresh opaque session key."""


class BcryptKeyIssuer:
    """Hashes a random UUID with bcrypt; the hash itself is the session key.

    The hash is never verified against the UUID later. Its cost only makes
    keys expensive to guess.
    """

    def __init__(self, cost: int = DEFAULT_COST) -> None:
        if not MIN_COST <= cost <= MAX_COST:
            raise ValueError(f"bcrypt cost must be between {MIN_COST} and {MAX_COST}")
        self._cost = cost

    @property
    def cost(self) -> int:
        return self._cost

    def issue_key(self) -> str:
        identifier = uuid.uuid4().hex
        try:
            hashed = bcrypt.hashpw(identifier.encode("utf-8"), bcrypt.gensalt(rounds=self._cost))
        except (ValueError, TypeError) as exc:
            raise KeyGenerationFailure(f"hash value: {exc}") from exc
        return hashed.decode("utf-8")


__all__ = ["BcryptKeyIssuer", "DEFAULT_COST", "SessionKeyIssuer"]
