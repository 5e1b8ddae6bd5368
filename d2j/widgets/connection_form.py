"""Form collecting connection parameters, the session secret and its duration."""

from __future__ import annotations

from pydantic import ValidationError
from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.message import Message
from textual.widgets import Button, Checkbox, Input, Static

from d2j.encryption import KEY_SIZES, is_valid_secret
from d2j.models import ConnectionParameters


class ConnectionForm(Container):
    """Connection view: test a database or open a session against it."""

    DEFAULT_CSS = """
    ConnectionForm {
        layout: vertical;
        height: auto;
        border: round $primary 40%;
        padding: 0 1;
    }

    ConnectionForm .panel-title {
        text-style: bold;
    }

    ConnectionForm .form-row {
        height: auto;
    }

    ConnectionForm .form-row Input {
        width: 1fr;
    }

    ConnectionForm .form-actions {
        height: auto;
        margin-top: 1;
    }

    ConnectionForm .form-actions > * {
        margin-right: 1;
    }

    #form-status {
        color: $text-muted;
    }
    """

    class TestRequested(Message):
        """Posted when the user asks to test the connection."""

        def __init__(self, params: ConnectionParameters) -> None:
            super().__init__()
            self.params = params

    class ConnectRequested(Message):
        """Posted when the user asks to open a session."""

        def __init__(self, params: ConnectionParameters, secret: str, duration: str) -> None:
            super().__init__()
            self.params = params
            self.secret = secret
            self.duration = duration

    def __init__(self, *, default_duration: str = "1h") -> None:
        super().__init__(id="connection-form")
        self._default_duration = default_duration

    def compose(self) -> ComposeResult:
        yield Static("Connection", classes="panel-title")
        yield Horizontal(
            Input(placeholder="Host", id="conn-host"),
            Input(placeholder="Port", id="conn-port", value="5432", type="integer"),
            Input(placeholder="Database", id="conn-database"),
            classes="form-row",
        )
        yield Horizontal(
            Input(placeholder="Username", id="conn-username"),
            Input(placeholder="Password", id="conn-password", password=True),
            Checkbox("SSL", id="conn-ssl"),
            classes="form-row",
        )
        yield Horizontal(
            Input(placeholder="Secret (16, 24 or 32 characters)", id="conn-secret", password=True),
            Input(placeholder="Session duration, e.g. 1h", id="conn-duration", value=self._default_duration),
            classes="form-row",
        )
        yield Horizontal(
            Button("Test connection", id="test-connection"),
            Button("Connect", id="connect", variant="primary"),
            Static("", id="form-status", markup=False),
            classes="form-actions",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "test-connection":
            params = self._read_parameters()
            if params is not None:
                self.post_message(self.TestRequested(params))
            event.stop()
        elif event.button.id == "connect":
            params = self._read_parameters()
            secret = self._value("#conn-secret")
            if params is None:
                event.stop()
                return
            if not is_valid_secret(secret):
                sizes = ", ".join(str(size) for size in KEY_SIZES)
                self.set_status(f"Secret must be {sizes} bytes long.")
                event.stop()
                return
            duration = self._value("#conn-duration") or self._default_duration
            self.post_message(self.ConnectRequested(params, secret, duration))
            event.stop()

    def secret(self) -> str:
        return self._value("#conn-secret")

    def set_status(self, message: str) -> None:
        self.query_one("#form-status", Static).update(message)

    def _read_parameters(self) -> ConnectionParameters | None:
        port_text = self._value("#conn-port")
        try:
            params = ConnectionParameters(
                host=self._value("#conn-host"),
                port=int(port_text) if port_text else 0,
                username=self._value("#conn-username"),
                password=self.query_one("#conn-password", Input).value,
                database_name=self._value("#conn-database"),
                ssl_mode_enabled=self.query_one("#conn-ssl", Checkbox).value,
            )
        except (ValidationError, ValueError) as exc:
            self.set_status(_first_problem(exc))
            return None
        self.set_status("")
        return params

    def _value(self, selector: str) -> str:
        return self.query_one(selector, Input).value.strip()


def _first_problem(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        errors = exc.errors()
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()))
            return f"Check {location or 'the form'}: {errors[0].get('msg', 'invalid value')}"
    return f"Check the form: {exc}"


__all__ = ["ConnectionForm"]
