"""One-line summary of the session tracker."""

from __future__ import annotations

from typing import Callable

from textual.widgets import Static

from d2j.state import SessionState, SessionTracker

_SEVERITIES = ("information", "success", "warning", "error")
_ICONS = dict(zip(_SEVERITIES, ("·", "✓", "!", "✗")))


class StatusBar(Static):
    """Shows the latest status line, coloured by severity."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    StatusBar.-success {
        color: $success;
    }
    StatusBar.-warning {
        color: $warning;
    }
    StatusBar.-error {
        color: $error;
    }
    """

    def __init__(self, tracker: SessionTracker) -> None:
        super().__init__(id="status-bar", markup=False)
        self._tracker = tracker
        self._unsubscribe: Callable[[], None] | None = None

    def on_mount(self) -> None:
        self._unsubscribe = self._tracker.subscribe(self._render_state)

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _render_state(self, state: SessionState) -> None:
        for severity in _SEVERITIES:
            self.set_class(state.severity == severity, f"-{severity}")
        headline = state.status.splitlines()[0][:80] if state.status else ""
        stamp = state.updated_at.astimezone().strftime("%H:%M:%S")
        self.update(
            f"{_ICONS.get(state.severity, '·')} {headline}"
            f"  ({stamp})  session {state.short_key}{state.lifetime_label}, {len(state.tables)} table(s)"
        )


__all__ = ["StatusBar"]
