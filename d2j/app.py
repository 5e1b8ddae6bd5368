"""Textual application entry point for d2j."""

from __future__ import annotations

import logging

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.logging import TextualHandler
from textual.widgets import Footer, Header

from .config import Settings, load_config, save_config
from .durations import parse_duration
from .errors import D2JError, DomainError, DomainErrorKind, describe, is_expected
from .logs import configure_logging
from .models import QuerySpec
from .providers import ForgetSessionProvider, RefreshTablesProvider
from .session import SessionService
from .state import SessionTracker
from .widgets import ConnectionForm, ConvertPad, StatusBar, TablesSidebar

LOG = logging.getLogger(__name__)

CONNECTION_OK_MESSAGE = "We have successfully established a connection with your database."


def _load_app_config() -> Settings:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


class D2JApp(App[None]):
    """Terminal client: open a session, browse tables, export rows as JSON."""

    TITLE = "d2j"
    COMMANDS = App.COMMANDS | {RefreshTablesProvider, ForgetSessionProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    #content {
        layout: horizontal;
        height: 1fr;
    }
    #main-column {
        layout: vertical;
        padding: 0 1;
        height: 1fr;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+r", "refresh", "Refresh Tables"),
        ("ctrl+p", "command_palette", "Command Palette"),
    ]

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        service: SessionService | None = None,
    ) -> None:
        super().__init__()
        self._settings = settings or _load_app_config()
        self._service = service or SessionService.from_settings(self._settings)
        self._tracker = SessionTracker(self._settings.last_session_key)

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        main_column = Vertical(
            ConnectionForm(default_duration=self._settings.default_session_duration),
            ConvertPad(),
            id="main-column",
        )
        yield Horizontal(TablesSidebar(self._tracker), main_column, id="content")
        yield StatusBar(self._tracker)
        yield Footer()

    async def on_unmount(self) -> None:
        await self._service.aclose()

    @property
    def tracker(self) -> SessionTracker:
        """Expose the session tracker for tests."""

        return self._tracker

    @property
    def settings(self) -> Settings:
        return self._settings

    async def action_refresh(self) -> None:
        await self.refresh_tables()

    async def on_connection_form_test_requested(self, message: ConnectionForm.TestRequested) -> None:
        self._tracker.report("Testing connection…")
        try:
            await self._service.test_connection(message.params)
        except (D2JError, TimeoutError) as exc:
            self._report_failure(exc)
            return
        self._tracker.report(CONNECTION_OK_MESSAGE, severity="success")
        self.notify(CONNECTION_OK_MESSAGE, severity="information")

    async def on_connection_form_connect_requested(self, message: ConnectionForm.ConnectRequested) -> None:
        self._tracker.report("Connecting…")
        try:
            session_key = await self._service.open_session(
                message.params,
                message.secret,
                message.duration,
            )
        except (D2JError, TimeoutError) as exc:
            self._report_failure(exc)
            return
        lifetime = parse_duration(message.duration)
        self._tracker.connected(session_key, message.secret, lifetime=lifetime)
        self._remember_session_key(session_key)
        await self.refresh_tables()

    async def on_tables_sidebar_table_selected(self, message: TablesSidebar.TableSelected) -> None:
        self.query_one(ConvertPad).set_table(message.table_name)

    async def on_convert_pad_convert_requested(self, message: ConvertPad.ConvertRequested) -> None:
        pad = self.query_one(ConvertPad)
        pad.set_status("Converting…")
        result = await self.convert(message.spec)
        if result is None:
            pad.set_status("")
            return
        pad.show_result(result)
        pad.set_status(f"Converted {message.spec.table_name}")

    async def convert(self, spec: QuerySpec) -> str | None:
        """Fetch the rows described by *spec* as JSON text."""

        credentials = self._session_credentials()
        if credentials is None:
            return None
        session_key, secret = credentials
        try:
            result = await self._service.fetch_as_json(session_key, secret, spec)
        except (D2JError, TimeoutError) as exc:
            self._handle_session_failure(exc)
            return None
        self._tracker.remember_secret(secret)
        self._tracker.report(f"Converted {spec.table_name} to JSON", severity="success")
        return result

    async def refresh_tables(self) -> None:
        """List the tables of the active session again."""

        credentials = self._session_credentials()
        if credentials is None:
            return
        session_key, secret = credentials
        try:
            tables = await self._service.list_tables(session_key, secret)
        except (D2JError, TimeoutError) as exc:
            self._handle_session_failure(exc)
            return
        self._tracker.remember_secret(secret)
        self._tracker.tables_loaded(tables)

    async def forget_session(self) -> None:
        """Delete the active session from the store."""

        session_key = self._tracker.state.session_key
        if session_key is None:
            return
        try:
            await self._service.close_session(session_key)
        except (D2JError, TimeoutError) as exc:
            self._report_failure(exc)
            return
        self._tracker.forget()
        self._remember_session_key(None)

    def _session_credentials(self) -> tuple[str, str] | None:
        state = self._tracker.state
        if state.session_key is None:
            self._tracker.report("Open a session first.", severity="warning")
            return None
        secret = self._tracker.secret or self.query_one(ConnectionForm).secret()
        if not secret:
            self._tracker.report("Enter the session secret to resume.", severity="warning")
            return None
        return state.session_key, secret

    def _handle_session_failure(self, exc: BaseException) -> None:
        if isinstance(exc, DomainError) and exc.kind is DomainErrorKind.SESSION_EXPIRED:
            self._tracker.forget(exc.kind.message)
            self._remember_session_key(None)
            self.notify(exc.kind.message, severity="warning")
            return
        self._report_failure(exc)

    def _report_failure(self, exc: BaseException) -> None:
        text = describe(exc, send_details=self._settings.send_details_on_internal_error)
        severity = "warning" if is_expected(exc) else "error"
        self._tracker.report(text, severity=severity)
        self.notify(text, severity=severity)

    def _remember_session_key(self, session_key: str | None) -> None:
        if self._settings.last_session_key == session_key:
            return
        self._settings = self._settings.with_last_session_key(session_key)
        try:
            save_config(self._settings)
        except OSError:
            LOG.exception("Failed to persist session key")


def main() -> None:
    """Invoke the Textual application."""

    settings = load_config()
    configure_logging(settings.log_level, handler=TextualHandler())
    D2JApp(settings=settings).run()


if __name__ == "__main__":
    main()
