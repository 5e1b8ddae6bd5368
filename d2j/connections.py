"""PostgreSQL gateway used by the session service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol, Sequence, runtime_checkable

import asyncpg

from .classifier import classify_connect_error
from .errors import CloseFailure, ConnectFailure, DomainError, QueryFailure
from .models import ConnectionParameters, TableDescriptor

LOG = logging.getLogger(__name__)


@runtime_checkable
class DatabaseClient(Protocol):
    """An open connection handed out by a gateway."""

    async def list_tables(self) -> list[TableDescriptor]:
        """Tables of the public schema."""

    async def execute_query(self, sql: str) -> list[str]:
        """Run *sql* and return the first column of each row as text."""

    async def close(self) -> None:
        """Close the connection."""


@runtime_checkable
class RelationalGateway(Protocol):
    """Protocol implemented by database gateways."""

    async def connect(self, params: ConnectionParameters) -> DatabaseClient:
        """Open a connection or raise a classified :class:`DomainError`."""


class AsyncpgClient:
    """Connection wrapper returned by :class:`AsyncpgGateway`."""

    _TABLES_QUERY = "SELECT schemaname, tablename FROM pg_catalog.pg_tables"

    def __init__(self, conn: Any, *, query_timeout: float | None = None) -> None:
        self._conn = conn
        self._query_timeout = query_timeout
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def list_tables(self) -> list[TableDescriptor]:
        try:
            rows = await self._conn.fetch(self._TABLES_QUERY, timeout=self._query_timeout)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise QueryFailure(f"select postgresql table names: {exc}") from exc
        tables = [
            TableDescriptor(schema_name=str(row["schemaname"]), table_name=str(row["tablename"]))
            for row in rows
        ]
        LOG.debug("Fetched catalog tables", extra={"count": len(tables)})
        return [table for table in tables if table.is_public]

    async def execute_query(self, sql: str) -> list[str]:
        try:
            records = await self._conn.fetch(sql, timeout=self._query_timeout)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise QueryFailure(f"run query: {exc}") from exc
        result: list[str] = []
        for index, record in enumerate(records):
            value = _first_column(record)
            if not isinstance(value, str):
                LOG.warning(
                    "Skipping row that is not JSON text",
                    extra={"row": index, "type": type(value).__name__},
                )
                continue
            result.append(value)
        return result

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._conn.close()
        except (asyncpg.InterfaceError, OSError) as exc:
            raise CloseFailure(f"close postgresql connection: {exc}") from exc


class AsyncpgGateway:
    """Opens one asyncpg connection per call; nothing is pooled."""

    def __init__(self, *, connect_timeout: float = 10.0, query_timeout: float | None = 30.0) -> None:
        self._connect_timeout = connect_timeout
        self._query_timeout = query_timeout

    async def connect(self, params: ConnectionParameters) -> AsyncpgClient:
        try:
            conn = await asyncpg.connect(**self._connect_kwargs(params))
        except Exception as exc:
            kind = classify_connect_error(exc)
            if kind is not None:
                LOG.info(kind.message, extra={"host": params.host, "port": params.port})
                raise DomainError(kind) from exc
            raise ConnectFailure(f"connect to postgresql: {exc}") from exc
        LOG.debug("Connected to postgresql", extra={"host": params.host, "database": params.database_name})
        return AsyncpgClient(conn, query_timeout=self._query_timeout)

    def _connect_kwargs(self, params: ConnectionParameters) -> dict[str, object]:
        return {
            "host": params.host,
            "port": params.port,
            "user": params.username,
            "password": params.password,
            "database": params.database_name,
            "ssl": "require" if params.ssl_mode_enabled else False,
            "timeout": self._connect_timeout,
        }


@asynccontextmanager
async def open_client(
    gateway: RelationalGateway,
    params: ConnectionParameters,
    *,
    logger: logging.Logger | None = None,
) -> AsyncIterator[DatabaseClient]:
    """Connect through *gateway* and close the client on every exit path.

    A close failure after a successful body is raised; after a failing body
    it is logged so the original error propagates.
    """

    log = logger or LOG
    client = await gateway.connect(params)
    try:
        yield client
    except BaseException:
        try:
            await client.close()
        except CloseFailure:
            log.exception("Failed to close database connection")
        raise
    await client.close()
    log.debug("Closed database connection")


def _first_column(record: Sequence[object]) -> object:
    if not len(record):
        return None
    return record[0]


__all__ = [
    "AsyncpgClient",
    "AsyncpgGateway",
    "DatabaseClient",
    "RelationalGateway",
    "open_client",
]
