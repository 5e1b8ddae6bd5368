"""Tests for the asyncpg gateway."""

from __future__ import annotations

import errno
import logging
import socket
from typing import Any

import pytest

from d2j.connections import AsyncpgClient, AsyncpgGateway, RelationalGateway, open_client
from d2j.errors import CloseFailure, ConnectFailure, DomainError, DomainErrorKind, QueryFailure
from d2j.models import ConnectionParameters, TableDescriptor

PARAMS = ConnectionParameters(
    host="db.local",
    port=5432,
    username="app",
    password="hunter2",
    database_name="shop",
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _FakeConnection:
    def __init__(
        self,
        *,
        tables: list[dict[str, str]] | None = None,
        rows: list[tuple[object, ...]] | None = None,
        fail_fetch: bool = False,
        fail_close: bool = False,
    ) -> None:
        self._tables = tables or []
        self._rows = rows or []
        self._fail_fetch = fail_fetch
        self._fail_close = fail_close
        self.queries: list[tuple[str, float | None]] = []
        self.close_calls = 0

    async def fetch(self, query: str, *, timeout: float | None = None) -> list[Any]:
        self.queries.append((query, timeout))
        if self._fail_fetch:
            raise OSError("connection reset by peer")
        if "pg_catalog.pg_tables" in query:
            return self._tables
        return self._rows

    async def close(self) -> None:
        self.close_calls += 1
        if self._fail_close:
            raise OSError("broken pipe")


def _install_connect(monkeypatch: pytest.MonkeyPatch, result: Any) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    async def _fake_connect(**kwargs: Any) -> Any:
        calls.append(kwargs)
        if isinstance(result, BaseException):
            raise result
        return result

    monkeypatch.setattr("d2j.connections.asyncpg.connect", _fake_connect)
    return calls


@pytest.mark.anyio
async def test_gateway_passes_connection_parameters(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_connect(monkeypatch, _FakeConnection())
    gateway = AsyncpgGateway(connect_timeout=3.0)

    await gateway.connect(PARAMS)
    await gateway.connect(PARAMS.model_copy(update={"ssl_mode_enabled": True}))

    assert calls[0] == {
        "host": "db.local",
        "port": 5432,
        "user": "app",
        "password": "hunter2",
        "database": "shop",
        "ssl": False,
        "timeout": 3.0,
    }
    assert calls[1]["ssl"] == "require"


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (socket.gaierror(socket.EAI_NONAME, "Name or service not known"), DomainErrorKind.INVALID_HOST),
        (ConnectionRefusedError(errno.ECONNREFUSED, "Connect call failed"), DomainErrorKind.INVALID_PORT),
    ],
)
async def test_gateway_raises_classified_domain_errors(
    monkeypatch: pytest.MonkeyPatch,
    error: BaseException,
    kind: DomainErrorKind,
) -> None:
    _install_connect(monkeypatch, error)

    with pytest.raises(DomainError) as excinfo:
        await AsyncpgGateway().connect(PARAMS)

    assert excinfo.value.kind is kind
    assert str(excinfo.value) == kind.message


@pytest.mark.anyio
async def test_gateway_wraps_unclassified_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_connect(monkeypatch, RuntimeError("server closed the connection unexpectedly"))

    with pytest.raises(ConnectFailure, match="server closed"):
        await AsyncpgGateway().connect(PARAMS)


@pytest.mark.anyio
async def test_client_lists_only_public_tables() -> None:
    conn = _FakeConnection(
        tables=[
            {"schemaname": "public", "tablename": "users"},
            {"schemaname": "pg_catalog", "tablename": "pg_class"},
            {"schemaname": "public", "tablename": "orders"},
            {"schemaname": "analytics", "tablename": "events"},
        ]
    )
    client = AsyncpgClient(conn, query_timeout=5.0)

    tables = await client.list_tables()

    assert tables == [
        TableDescriptor(schema_name="public", table_name="users"),
        TableDescriptor(schema_name="public", table_name="orders"),
    ]
    assert conn.queries == [("SELECT schemaname, tablename FROM pg_catalog.pg_tables", 5.0)]


@pytest.mark.anyio
async def test_client_returns_first_column_and_skips_non_text_rows() -> None:
    conn = _FakeConnection(rows=[('{"id": 1}',), (None,), ('{"id": 2}',)])
    client = AsyncpgClient(conn)

    rows = await client.execute_query("SELECT to_jsonb(users) FROM users")

    assert rows == ['{"id": 1}', '{"id": 2}']


@pytest.mark.anyio
async def test_client_wraps_query_failures() -> None:
    client = AsyncpgClient(_FakeConnection(fail_fetch=True))

    with pytest.raises(QueryFailure, match="run query"):
        await client.execute_query("SELECT 1")
    with pytest.raises(QueryFailure, match="select postgresql table names"):
        await client.list_tables()


@pytest.mark.anyio
async def test_client_close_is_idempotent_and_wraps_failures() -> None:
    conn = _FakeConnection(fail_close=True)
    client = AsyncpgClient(conn)

    with pytest.raises(CloseFailure):
        await client.close()
    await client.close()

    assert client.closed is True
    assert conn.close_calls == 1


@pytest.mark.anyio
async def test_open_client_closes_after_success(monkeypatch: pytest.MonkeyPatch) -> None:
    conn = _FakeConnection()
    _install_connect(monkeypatch, conn)

    async with open_client(AsyncpgGateway(), PARAMS) as client:
        assert isinstance(client, AsyncpgClient)

    assert conn.close_calls == 1


@pytest.mark.anyio
async def test_open_client_closes_when_body_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    conn = _FakeConnection()
    _install_connect(monkeypatch, conn)

    with pytest.raises(QueryFailure):
        async with open_client(AsyncpgGateway(), PARAMS):
            raise QueryFailure("run query: syntax error")

    assert conn.close_calls == 1


@pytest.mark.anyio
async def test_open_client_keeps_body_error_when_close_also_fails(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    _install_connect(monkeypatch, _FakeConnection(fail_close=True))

    with caplog.at_level(logging.ERROR, logger="d2j"):
        with pytest.raises(QueryFailure):
            async with open_client(AsyncpgGateway(), PARAMS):
                raise QueryFailure("run query: syntax error")

    assert "Failed to close database connection" in caplog.text


@pytest.mark.anyio
async def test_open_client_surfaces_close_failure_after_success(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_connect(monkeypatch, _FakeConnection(fail_close=True))

    with pytest.raises(CloseFailure):
        async with open_client(AsyncpgGateway(), PARAMS):
            pass


def test_gateway_satisfies_protocol() -> None:
    assert isinstance(AsyncpgGateway(), RelationalGateway)
