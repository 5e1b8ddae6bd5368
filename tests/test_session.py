"""Tests for the session service wiring."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from d2j.caching import InMemorySessionStore
from d2j.config import Settings
from d2j.connections import AsyncpgGateway
from d2j.encryption import AesGcmCodec
from d2j.errors import (
    CredentialFormatError,
    DecryptionFailure,
    DomainError,
    DomainErrorKind,
    EncryptionFailure,
    InvalidSessionDuration,
    QueryFailure,
)
from d2j.hashing import BcryptKeyIssuer
from d2j.models import ConnectionParameters, QuerySpec, TableDescriptor
from d2j.session import SessionService

SECRET = "0123456789abcdef"

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


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class _FakeClient:
    def __init__(self, gateway: _FakeGateway) -> None:
        self._gateway = gateway
        self.closed = False

    async def list_tables(self) -> list[TableDescriptor]:
        return [TableDescriptor(schema_name="public", table_name=name) for name in self._gateway.tables]

    async def execute_query(self, sql: str) -> list[str]:
        self._gateway.statements.append(sql)
        if self._gateway.query_error is not None:
            raise self._gateway.query_error
        return list(self._gateway.rows)

    async def close(self) -> None:
        self.closed = True


class _FakeGateway:
    def __init__(self) -> None:
        self.tables: list[str] = ["users", "orders"]
        self.rows: list[str] = ['{"id": 1}', '{"id": 2}']
        self.connected: list[ConnectionParameters] = []
        self.clients: list[_FakeClient] = []
        self.statements: list[str] = []
        self.connect_error: BaseException | None = None
        self.query_error: BaseException | None = None
        self.delay = 0.0

    async def connect(self, params: ConnectionParameters) -> _FakeClient:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.connect_error is not None:
            raise self.connect_error
        self.connected.append(params)
        client = _FakeClient(self)
        self.clients.append(client)
        return client


class _FakeIssuer:
    def __init__(self) -> None:
        self.issued = 0

    def issue_key(self) -> str:
        self.issued += 1
        return f"$2a$14$session-key-{self.issued}"


def _service(
    gateway: _FakeGateway,
    *,
    store: InMemorySessionStore | None = None,
    issuer: _FakeIssuer | None = None,
) -> SessionService:
    return SessionService(
        store=store if store is not None else InMemorySessionStore(clock=_Clock()),
        codec=AesGcmCodec(),
        issuer=issuer if issuer is not None else _FakeIssuer(),
        gateway=gateway,
    )


@pytest.mark.anyio
async def test_test_connection_opens_and_closes_client() -> None:
    gateway = _FakeGateway()

    await _service(gateway).test_connection(PARAMS)

    assert gateway.connected == [PARAMS]
    assert all(client.closed for client in gateway.clients)


@pytest.mark.anyio
async def test_open_session_stores_encrypted_credentials() -> None:
    gateway = _FakeGateway()
    store = InMemorySessionStore(clock=_Clock())
    service = _service(gateway, store=store)

    key = await service.open_session(PARAMS, SECRET, "30m")

    assert key == "$2a$14$session-key-1"
    stored = await store.get(key)
    assert "hunter2" not in stored
    decrypted = AesGcmCodec().decrypt(stored, SECRET)
    assert ConnectionParameters.from_json_bytes(decrypted) == PARAMS
    assert b'"databaseName":"shop"' in decrypted
    assert gateway.clients[0].closed is True


@pytest.mark.anyio
async def test_open_session_rejects_bad_duration_before_connecting() -> None:
    gateway = _FakeGateway()
    issuer = _FakeIssuer()
    store = InMemorySessionStore(clock=_Clock())

    with pytest.raises(InvalidSessionDuration):
        await _service(gateway, store=store, issuer=issuer).open_session(PARAMS, SECRET, "forever")

    assert gateway.connected == []
    assert issuer.issued == 0
    assert len(store) == 0


@pytest.mark.anyio
async def test_open_session_rejects_bad_secret_before_connecting() -> None:
    gateway = _FakeGateway()
    issuer = _FakeIssuer()
    store = InMemorySessionStore(clock=_Clock())

    with pytest.raises(EncryptionFailure):
        await _service(gateway, store=store, issuer=issuer).open_session(PARAMS, "short", "1h")

    assert gateway.connected == []
    assert issuer.issued == 0
    assert len(store) == 0


@pytest.mark.anyio
async def test_open_session_propagates_domain_errors_without_storing() -> None:
    gateway = _FakeGateway()
    gateway.connect_error = DomainError(DomainErrorKind.INVALID_PORT)
    issuer = _FakeIssuer()
    store = InMemorySessionStore(clock=_Clock())

    with pytest.raises(DomainError) as excinfo:
        await _service(gateway, store=store, issuer=issuer).open_session(PARAMS, SECRET, "1h")

    assert excinfo.value.kind is DomainErrorKind.INVALID_PORT
    assert issuer.issued == 0
    assert len(store) == 0


@pytest.mark.anyio
async def test_list_tables_returns_public_table_names() -> None:
    gateway = _FakeGateway()
    service = _service(gateway)
    key = await service.open_session(PARAMS, SECRET, "1h")

    tables = await service.list_tables(key, SECRET)

    assert tables == ["users", "orders"]
    assert gateway.connected[-1] == PARAMS
    assert all(client.closed for client in gateway.clients)


@pytest.mark.anyio
async def test_fetch_as_json_runs_compiled_query() -> None:
    gateway = _FakeGateway()
    service = _service(gateway)
    key = await service.open_session(PARAMS, SECRET, "1h")

    result = await service.fetch_as_json(key, SECRET, QuerySpec(table_name="users", limit=2))

    assert result == '[ {"id": 1},\n{"id": 2}\n ]'
    assert gateway.statements == ["SELECT to_jsonb(users) FROM users LIMIT 2"]


@pytest.mark.anyio
async def test_fetch_as_json_with_no_rows_returns_empty_array() -> None:
    gateway = _FakeGateway()
    gateway.rows = []
    service = _service(gateway)
    key = await service.open_session(PARAMS, SECRET, "1h")

    result = await service.fetch_as_json(key, SECRET, QuerySpec(table_name="users", fields=("id",)))

    assert result == "[  ]"


@pytest.mark.anyio
async def test_fetch_as_json_closes_client_when_query_fails() -> None:
    gateway = _FakeGateway()
    service = _service(gateway)
    key = await service.open_session(PARAMS, SECRET, "1h")
    gateway.query_error = QueryFailure("run query: column \"nope\" does not exist")

    with pytest.raises(QueryFailure):
        await service.fetch_as_json(key, SECRET, QuerySpec(table_name="users", fields=("nope",)))

    assert all(client.closed for client in gateway.clients)


@pytest.mark.anyio
async def test_expired_session_raises_session_expired() -> None:
    clock = _Clock()
    store = InMemorySessionStore(clock=clock)
    gateway = _FakeGateway()
    service = _service(gateway, store=store)
    key = await service.open_session(PARAMS, SECRET, "10m")

    clock.now += timedelta(minutes=10).total_seconds()

    with pytest.raises(DomainError) as excinfo:
        await service.list_tables(key, SECRET)
    assert excinfo.value.kind is DomainErrorKind.SESSION_EXPIRED
    assert len(gateway.connected) == 1


@pytest.mark.anyio
async def test_zero_duration_session_is_immediately_expired() -> None:
    service = _service(_FakeGateway())
    key = await service.open_session(PARAMS, SECRET, "0s")

    with pytest.raises(DomainError) as excinfo:
        await service.fetch_as_json(key, SECRET, QuerySpec(table_name="users"))
    assert excinfo.value.kind is DomainErrorKind.SESSION_EXPIRED


@pytest.mark.anyio
async def test_unknown_key_raises_session_expired() -> None:
    with pytest.raises(DomainError) as excinfo:
        await _service(_FakeGateway()).list_tables("$2a$14$unknown", SECRET)

    assert excinfo.value.kind is DomainErrorKind.SESSION_EXPIRED


@pytest.mark.anyio
async def test_wrong_secret_fails_decryption_without_connecting() -> None:
    gateway = _FakeGateway()
    service = _service(gateway)
    key = await service.open_session(PARAMS, SECRET, "1h")

    with pytest.raises(DecryptionFailure):
        await service.list_tables(key, "fedcba9876543210")

    assert len(gateway.connected) == 1


@pytest.mark.anyio
async def test_corrupt_payload_is_a_credential_format_error() -> None:
    store = InMemorySessionStore(clock=_Clock())
    await store.put("key", AesGcmCodec().encrypt(b'{"host": "db"}', SECRET), timedelta(hours=1))

    with pytest.raises(CredentialFormatError):
        await _service(_FakeGateway(), store=store).list_tables("key", SECRET)


@pytest.mark.anyio
async def test_close_session_forgets_key() -> None:
    service = _service(_FakeGateway())
    key = await service.open_session(PARAMS, SECRET, "1h")

    await service.close_session(key)
    await service.close_session(key)

    with pytest.raises(DomainError) as excinfo:
        await service.list_tables(key, SECRET)
    assert excinfo.value.kind is DomainErrorKind.SESSION_EXPIRED


@pytest.mark.anyio
async def test_operations_are_bounded_by_timeout() -> None:
    gateway = _FakeGateway()
    gateway.delay = 1.0

    with pytest.raises(TimeoutError):
        await _service(gateway).test_connection(PARAMS, timeout=0.01)


@pytest.mark.anyio
async def test_each_session_gets_its_own_key() -> None:
    service = _service(_FakeGateway())

    first = await service.open_session(PARAMS, SECRET, "1h")
    second = await service.open_session(PARAMS, SECRET, "1h")

    assert first != second
    assert await service.list_tables(first, SECRET) == await service.list_tables(second, SECRET)


def test_from_settings_builds_memory_backed_service() -> None:
    service = SessionService.from_settings(Settings(store="memory", hash_cost=4))

    assert isinstance(service.store, InMemorySessionStore)
    assert isinstance(service._issuer, BcryptKeyIssuer)  # type: ignore[attr-defined]
    assert service._issuer.cost == 4  # type: ignore[attr-defined]
    assert isinstance(service._gateway, AsyncpgGateway)  # type: ignore[attr-defined]
