"""Convert view: choose a table, optional fields, filter and limit; show JSON."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.message import Message
from textual.widgets import Button, Input, Static, TextArea

from d2j.models import QuerySpec
from d2j.query import parse_fields


class ConvertPad(Container):
    """Builds a :class:`QuerySpec` from user input and renders the JSON result."""

    DEFAULT_CSS = """
    ConvertPad {
        layout: vertical;
        border: round $primary 40%;
        padding: 0 1;
        height: 1fr;
        background: $surface;
    }

    ConvertPad .panel-title {
        text-style: bold;
    }

    ConvertPad .form-row {
        height: auto;
    }

    ConvertPad .form-row Input {
        width: 1fr;
    }

    ConvertPad .convert-actions {
        height: auto;
    }

    ConvertPad .convert-actions > * {
        margin-right: 1;
    }

    #convert-result {
        height: 1fr;
        margin-top: 1;
    }
    """

    class ConvertRequested(Message):
        """Posted when the user asks for the JSON export."""

        def __init__(self, spec: QuerySpec) -> None:
            super().__init__()
            self.spec = spec

    def __init__(self) -> None:
        super().__init__(id="convert-pad")

    def compose(self) -> ComposeResult:
        yield Static("Convert to JSON", classes="panel-title")
        yield Horizontal(
            Input(placeholder="Table", id="convert-table"),
            Input(placeholder="Fields, comma separated (all when empty)", id="convert-fields"),
            classes="form-row",
        )
        yield Horizontal(
            Input(placeholder="Where, e.g. id > 5", id="convert-where"),
            Input(placeholder="Limit", id="convert-limit", type="integer"),
            classes="form-row",
        )
        yield Horizontal(
            Button("Get JSON", id="get-json", variant="primary"),
            Static("", id="convert-status", markup=False),
            classes="convert-actions",
        )
        yield TextArea("", id="convert-result", read_only=True)

    def set_table(self, table_name: str) -> None:
        self.query_one("#convert-table", Input).value = table_name

    def show_result(self, text: str) -> None:
        self.query_one("#convert-result", TextArea).load_text(text)

    def set_status(self, message: str) -> None:
        self.query_one("#convert-status", Static).update(message)

    def build_spec(self) -> QuerySpec | None:
        """Read the inputs; returns ``None`` and shows why when they are invalid."""

        table = self.query_one("#convert-table", Input).value.strip()
        if not table:
            self.set_status("Choose a table first.")
            return None
        limit_text = self.query_one("#convert-limit", Input).value.strip()
        try:
            limit = int(limit_text) if limit_text else 0
            spec = QuerySpec(
                table_name=table,
                fields=parse_fields(self.query_one("#convert-fields", Input).value),
                where=self.query_one("#convert-where", Input).value.strip(),
                limit=limit,
            )
        except ValueError as exc:
            self.set_status(f"Check the form: {exc}")
            return None
        self.set_status("")
        return spec

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id != "get-json":
            return
        event.stop()
        spec = self.build_spec()
        if spec is not None:
            self.post_message(self.ConvertRequested(spec))


__all__ = ["ConvertPad"]
