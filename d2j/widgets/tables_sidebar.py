"""Sidebar listing the public tables of the active session."""

from __future__ import annotations

from typing import Callable

from textual.app import ComposeResult
from textual.containers import Container
from textual.message import Message
from textual.widgets import Label, ListItem, ListView, Static

from d2j.state import SessionState, SessionTracker


class TablesSidebar(Container):
    """Shows the tables returned by the last listing."""

    DEFAULT_CSS = """
    TablesSidebar {
        width: 28;
        min-width: 22;
        border-right: solid $surface-darken-1;
        padding: 1;
        height: 1fr;
        background: $surface-darken-2;
    }

    TablesSidebar .sidebar-heading {
        text-style: bold;
        margin-bottom: 1;
    }

    #table-list {
        height: 1fr;
        border: round $primary 30%;
    }

    #session-summary {
        padding-top: 1;
        border-top: solid $surface-darken-1;
        color: $text-muted;
        min-height: 3;
    }
    """

    class TableSelected(Message):
        """Posted when a table is chosen from the list."""

        def __init__(self, table_name: str) -> None:
            super().__init__()
            self.table_name = table_name

    def __init__(self, tracker: SessionTracker) -> None:
        super().__init__(id="tables-sidebar")
        self._tracker = tracker
        self._unsubscribe: Callable[[], None] | None = None
        self._rendered: tuple[str, ...] | None = None

    def compose(self) -> ComposeResult:
        yield Static("Tables", classes="sidebar-heading")
        yield ListView(id="table-list")
        yield Static("", id="session-summary")

    async def on_mount(self) -> None:
        self._unsubscribe = self._tracker.subscribe(self._handle_state)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def table_names(self) -> tuple[str, ...]:
        return self._rendered or ()

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        name = getattr(event.item, "table_name", None)
        if name:
            self.post_message(self.TableSelected(name))
        event.stop()

    def _handle_state(self, state: SessionState) -> None:
        summary = self.query_one("#session-summary", Static)
        if state.connected:
            summary.update(f"Session {state.short_key}\n{len(state.tables)} table(s)")
        else:
            summary.update("No active session")
        if state.tables == self._rendered:
            return
        self._rendered = state.tables
        table_list = self.query_one("#table-list", ListView)
        table_list.clear()
        for name in state.tables:
            table_list.append(_TableItem(name))


class _TableItem(ListItem):
    def __init__(self, table_name: str) -> None:
        super().__init__(Label(table_name))
        self.table_name = table_name


__all__ = ["TablesSidebar"]
