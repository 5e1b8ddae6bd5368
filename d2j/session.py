"""Session operations: test, open, list tables, fetch JSON, close."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Awaitable, Callable, TypeVar

from pydantic import ValidationError

from .caching import InMemorySessionStore, RedisSessionStore, SessionStore
from .config import Settings
from .connections import AsyncpgGateway, RelationalGateway, open_client
from .durations import parse_duration
from .encryption import AesGcmCodec, CredentialCodec
from .errors import (
    CredentialFormatError,
    D2JError,
    DomainError,
    DomainErrorKind,
    EntryNotFound,
    InvalidSessionDuration,
)
from .hashing import BcryptKeyIssuer, SessionKeyIssuer
from .models import ConnectionParameters, QuerySpec
from .query import build_query, rows_to_json_array

T = TypeVar("T")


class SessionService:
    """Runs every session operation against injected collaborators.

    The service keeps no per-session state: each call reads what it needs from
    the store, opens a fresh connection and closes it before returning.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        codec: CredentialCodec,
        issuer: SessionKeyIssuer,
        gateway: RelationalGateway,
        operation_timeout: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._codec = codec
        self._issuer = issuer
        self._gateway = gateway
        self._operation_timeout = operation_timeout
        self._log = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: Settings, *, logger: logging.Logger | None = None) -> SessionService:
        """Build the production object graph from *settings*."""

        store: SessionStore
        if settings.store == "memory":
            store = InMemorySessionStore()
        else:
            store = RedisSessionStore.connect(
                host=settings.redis.host,
                port=settings.redis.port,
                password=settings.redis.password,
                database=settings.redis.database,
                socket_timeout=settings.connect_timeout,
            )
        return cls(
            store=store,
            codec=AesGcmCodec(),
            issuer=BcryptKeyIssuer(settings.hash_cost),
            gateway=AsyncpgGateway(
                connect_timeout=settings.connect_timeout,
                query_timeout=settings.query_timeout,
            ),
            operation_timeout=settings.operation_timeout,
            logger=logger,
        )

    @property
    def store(self) -> SessionStore:
        return self._store

    async def test_connection(self, params: ConnectionParameters, *, timeout: float | None = None) -> None:
        """Open and immediately close a connection."""

        async def _run() -> None:
            async with open_client(self._gateway, params, logger=self._log):
                self._log.debug("Connection test succeeded", extra={"host": params.host})

        await self._bounded("test_connection", _run, timeout)

    async def open_session(
        self,
        params: ConnectionParameters,
        secret: str,
        session_duration: str,
        *,
        timeout: float | None = None,
    ) -> str:
        """Validate connectivity, then store *params* encrypted under *secret*.

        Returns the new session key.
        """

        ttl = self._parse_ttl(session_duration)

        async def _run() -> str:
            ciphertext = self._codec.encrypt(params.to_json_bytes(), secret)
            async with open_client(self._gateway, params, logger=self._log):
                self._log.debug("Connected to database", extra={"host": params.host})
            # bcrypt blocks; keep it off the event loop.
            session_key = await asyncio.to_thread(self._issuer.issue_key)
            await self._store.put(session_key, ciphertext, ttl)
            self._log.info("Opened session", extra={"ttl_seconds": ttl.total_seconds()})
            return session_key

        return await self._bounded("open_session", _run, timeout)

    async def list_tables(self, session_key: str, secret: str, *, timeout: float | None = None) -> list[str]:
        """Names of the public tables reachable through the session."""

        async def _run() -> list[str]:
            params = await self._load_parameters(session_key, secret)
            async with open_client(self._gateway, params, logger=self._log) as client:
                tables = await client.list_tables()
            self._log.debug("Listed tables", extra={"count": len(tables)})
            return [table.table_name for table in tables]

        return await self._bounded("list_tables", _run, timeout)

    async def fetch_as_json(
        self,
        session_key: str,
        secret: str,
        spec: QuerySpec,
        *,
        timeout: float | None = None,
    ) -> str:
        """Rows selected by *spec* as JSON array text."""

        async def _run() -> str:
            params = await self._load_parameters(session_key, secret)
            statement = build_query(spec)
            self._log.debug("Built query", extra={"table": spec.table_name})
            async with open_client(self._gateway, params, logger=self._log) as client:
                rows = await client.execute_query(statement)
            return rows_to_json_array(rows)

        return await self._bounded("fetch_as_json", _run, timeout)

    async def close_session(self, session_key: str, *, timeout: float | None = None) -> None:
        """Forget the session; unknown keys are ignored."""

        async def _run() -> None:
            await self._store.delete(session_key)
            self._log.info("Closed session")

        await self._bounded("close_session", _run, timeout)

    async def aclose(self) -> None:
        await self._store.close()

    async def _load_parameters(self, session_key: str, secret: str) -> ConnectionParameters:
        try:
            ciphertext = await self._store.get(session_key)
        except EntryNotFound as exc:
            self._log.info("Connection session time expired")
            raise DomainError(DomainErrorKind.SESSION_EXPIRED) from exc
        plaintext = self._codec.decrypt(ciphertext, secret)
        try:
            return ConnectionParameters.from_json_bytes(plaintext)
        except ValidationError as exc:
            raise CredentialFormatError(f"unmarshal database credentials: {exc}") from exc

    def _parse_ttl(self, session_duration: str) -> timedelta:
        try:
            return parse_duration(session_duration)
        except InvalidSessionDuration:
            self._log.warning("Rejected session duration", extra={"duration": session_duration})
            raise

    async def _bounded(
        self,
        name: str,
        operation: Callable[[], Awaitable[T]],
        timeout: float | None,
    ) -> T:
        limit = timeout if timeout is not None else self._operation_timeout
        try:
            async with asyncio.timeout(limit):
                return await operation()
        except DomainError:
            raise
        except (D2JError, TimeoutError):
            self._log.exception("Session operation failed", extra={"operation": name})
            raise


__all__ = ["SessionService"]
