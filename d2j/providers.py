"""Command palette providers for session actions."""

from __future__ import annotations

from typing import Awaitable, Callable

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType


class _SessionActionProvider(Provider):
    """Exposes one app coroutine as a palette command."""

    _LABEL = ""
    _HELP = ""
    _ACTION = ""

    async def search(self, query: str) -> Hits:
        if self._action is None:
            return
        matcher = self.matcher(query)
        score = matcher.match(self._LABEL)
        if score > 0:
            yield Hit(
                score=score,
                match_display=matcher.highlight(self._LABEL),
                command=self._build_callback(),
                help=self._HELP,
            )

    async def discover(self) -> Hits:
        if self._action is None:
            return
        yield DiscoveryHit(
            display=self._LABEL,
            command=self._build_callback(),
            help=self._HELP,
        )

    @property
    def _action(self) -> Callable[[], Awaitable[None]] | None:
        return getattr(self.app, self._ACTION, None)

    def _build_callback(self) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            action = self._action
            if action is None:
                return
            await action()

        return _run


class RefreshTablesProvider(_SessionActionProvider):
    """Reload the table list of the active session."""

    _LABEL = "Refresh tables"
    _HELP = "List the public tables of the active session again (Ctrl+R)."
    _ACTION = "refresh_tables"


class ForgetSessionProvider(_SessionActionProvider):
    """Drop the active session from the store."""

    _LABEL = "Forget session"
    _HELP = "Delete the stored session so its key stops working."
    _ACTION = "forget_session"


__all__ = ["ForgetSessionProvider", "RefreshTablesProvider"]
