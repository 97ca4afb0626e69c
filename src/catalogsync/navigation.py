"""Navigation adapters: the only code that touches the host's address bar.

The sync engine sees the host through three operations (current_query,
replace_query, on_external_change). MemoryNavigationAdapter implements
them over an in-memory history stack; it backs the terminal UI and the
test-suite, and can mimic hosts that report their own writes back as
change events.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from reactivex import Observable
from reactivex.subject import Subject

from catalogsync.constants import DEFAULT_BASE_PATH

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class NavigationCause(str, Enum):
    """Why the address changed. Informational only: never trusted for echo detection."""

    LOAD = "load"  # first load / reload
    PUSH = "push"  # link navigation from elsewhere in the app
    POP = "pop"  # back / forward
    REPLACE = "replace"  # host echoing a replace_query() write


@dataclass(frozen=True)
class NavigationEvent:
    """An observed address change.

    ``token`` is the out-of-band value stored with the history entry by
    ``replace_query`` (``None`` when the entry was never written by us or
    the host cannot carry one).
    """

    query: str
    cause: NavigationCause = NavigationCause.PUSH
    token: int | None = None


@dataclass(frozen=True)
class HistoryEntry:
    query: str
    token: int | None = None


def normalize_query(query: str | None) -> str:
    """Strip a leading ``?``; ``None`` becomes ``""``."""
    return (query or "").lstrip("?")


class NavigationAdapter(ABC):
    """Host URL/history mechanism as seen by the sync engine."""

    @abstractmethod
    def current_query(self) -> str:
        """Return the query portion of the current address (no ``?``)."""

    @abstractmethod
    def replace_query(self, query: str, token: int | None = None) -> None:
        """Rewrite the current address in place.

        Must not push a history entry or reload. *token* is stored with the
        entry out of band (never in the URL) and reported back on events
        for that entry.
        """

    @abstractmethod
    def on_external_change(self, callback: Callable[[NavigationEvent], None]) -> Unsubscribe:
        """Register *callback* for address changes; returns an unsubscribe function."""


class MemoryNavigationAdapter(NavigationAdapter):
    """In-memory history stack with browser-like semantics.

    Args:
        initial_query: Query of the first history entry.
        base_path: Path shown in :attr:`url` (e.g. ``/shop``).
        echo_writes: If True, every ``replace_query`` is also reported as
            an external change, the way some routers re-emit their own
            updates.
    """

    def __init__(
        self,
        initial_query: str = "",
        base_path: str = DEFAULT_BASE_PATH,
        echo_writes: bool = False,
    ) -> None:
        self.base_path = base_path
        self.echo_writes = echo_writes
        self._entries: list[HistoryEntry] = [HistoryEntry(normalize_query(initial_query))]
        self._index = 0
        self._external: Subject = Subject()
        self._address: Subject = Subject()
        self.replace_count = 0

    # ------------------------------------------------------------------
    # NavigationAdapter
    # ------------------------------------------------------------------

    def current_query(self) -> str:
        return self._entries[self._index].query

    def replace_query(self, query: str, token: int | None = None) -> None:
        query = normalize_query(query)
        self._entries[self._index] = HistoryEntry(query, token)
        self.replace_count += 1
        self._address.on_next(self.url)
        if self.echo_writes:
            self._external.on_next(NavigationEvent(query, NavigationCause.REPLACE, token))

    def on_external_change(self, callback: Callable[[NavigationEvent], None]) -> Unsubscribe:
        return self._external.subscribe(on_next=callback).dispose

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def on_address_change(self, callback: Callable[[str], None]) -> Unsubscribe:
        """Register *callback* for every address change, self writes included."""
        return self._address.subscribe(on_next=callback).dispose

    @property
    def external_changes(self) -> Observable:
        return self._external

    @property
    def current_token(self) -> int | None:
        return self._entries[self._index].token

    @property
    def url(self) -> str:
        query = self.current_query()
        return f"{self.base_path}?{query}" if query else self.base_path

    @property
    def history(self) -> list[str]:
        """Queries of all history entries, oldest first."""
        return [entry.query for entry in self._entries]

    @property
    def index(self) -> int:
        return self._index

    @property
    def can_go_back(self) -> bool:
        return self._index > 0

    @property
    def can_go_forward(self) -> bool:
        return self._index < len(self._entries) - 1

    # ------------------------------------------------------------------
    # Host-side navigation (everything here is "external" to the engine)
    # ------------------------------------------------------------------

    def load(self, query: str | None = None) -> None:
        """Simulate a (re)load; *query* replaces the current entry if given."""
        if query is not None:
            self._entries[self._index] = HistoryEntry(normalize_query(query))
        self._emit(NavigationCause.LOAD)

    def navigate(self, query: str) -> None:
        """Push a new entry, discarding any forward history."""
        del self._entries[self._index + 1 :]
        self._entries.append(HistoryEntry(normalize_query(query)))
        self._index += 1
        self._emit(NavigationCause.PUSH)

    def navigate_url(self, url: str) -> None:
        """Push an address typed by the user; only the query part is kept."""
        _, _, query = url.strip().partition("?")
        self.navigate(query)

    def back(self) -> bool:
        """Go back one entry. Returns False if already at the oldest entry."""
        if not self.can_go_back:
            return False
        self._index -= 1
        self._emit(NavigationCause.POP)
        return True

    def forward(self) -> bool:
        """Go forward one entry. Returns False if already at the newest entry."""
        if not self.can_go_forward:
            return False
        self._index += 1
        self._emit(NavigationCause.POP)
        return True

    def _emit(self, cause: NavigationCause) -> None:
        entry = self._entries[self._index]
        logger.debug(
            f"navigation cause={cause.value} query={entry.query!r} index={self._index}"
        )
        self._address.on_next(self.url)
        self._external.on_next(NavigationEvent(entry.query, cause, entry.token))
