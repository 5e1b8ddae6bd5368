"""Client-side view of the active session, shared by the TUI widgets."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable

from .durations import format_duration

StateListener = Callable[["SessionState"], None]


@dataclass(frozen=True, slots=True)
class SessionState:
    """Snapshot of what the terminal client knows about its session."""

    session_key: str | None = None
    tables: tuple[str, ...] = ()
    status: str = "Not connected"
    severity: str = "information"
    lifetime: timedelta | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @property
    def connected(self) -> bool:
        return self.session_key is not None

    @property
    def short_key(self) -> str:
        if not self.session_key:
            return "—"
        return f"…{self.session_key[-10:]}"

    @property
    def lifetime_label(self) -> str:
        if self.lifetime is None:
            return ""
        return f" for {format_duration(self.lifetime)}"


class SessionTracker:
    """Holds the current :class:`SessionState` and notifies subscribers.

    The secret lives here only in memory; it is never written to disk.
    """

    def __init__(self, session_key: str | None = None) -> None:
        self._state = SessionState(session_key=session_key)
        self._secret: str | None = None
        self._listeners: set[StateListener] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def secret(self) -> str | None:
        return self._secret

    def remember_secret(self, secret: str) -> None:
        self._secret = secret

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Subscribe to state updates; returns an unsubscribe handle."""

        self._listeners.add(listener)
        listener(self._state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def connected(self, session_key: str, secret: str, *, lifetime: timedelta | None = None) -> None:
        self._secret = secret
        self._update(
            session_key=session_key,
            tables=(),
            lifetime=lifetime,
            status="Session opened",
            severity="success",
        )

    def tables_loaded(self, tables: list[str]) -> None:
        self._update(
            tables=tuple(tables),
            status=f"{len(tables)} table(s)",
            severity="success",
        )

    def report(self, status: str, *, severity: str = "information") -> None:
        self._update(status=status, severity=severity)

    def forget(self, status: str = "Session closed") -> None:
        self._secret = None
        self._update(session_key=None, tables=(), lifetime=None, status=status, severity="information")

    def _update(self, **changes: object) -> None:
        self._state = replace(
            self._state,
            updated_at=datetime.now(tz=timezone.utc),
            **changes,  # type: ignore[arg-type]
        )
        for listener in tuple(self._listeners):
            listener(self._state)


__all__ = ["SessionState", "SessionTracker", "StateListener"]
