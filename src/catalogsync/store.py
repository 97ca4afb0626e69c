"""FilterStore: the single mutable cell holding the current FilterState.

Every ``set_filters`` call notifies subscribers synchronously with a
FilterChange carrying its source, so the SyncController can tell user
edits (LOCAL) from its own URL-driven updates (EXTERNAL).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from reactivex import Observable
from reactivex.subject import BehaviorSubject, Subject

from catalogsync.models import DEFAULT_FILTERS, ChangeSource, FilterChange, FilterState

logger = logging.getLogger(__name__)

Updater = Callable[[FilterState], FilterState]


class FilterStore:
    """Current filter state plus change subscribers.

    ``observable`` replays the current state to new subscribers (use it
    to drive a product-fetch pipeline); ``on_change`` only delivers
    future changes.
    """

    def __init__(self, initial: FilterState = DEFAULT_FILTERS) -> None:
        self._state = initial
        self._states = BehaviorSubject(initial)
        self._changes: Subject = Subject()

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def observable(self) -> Observable:
        return self._states

    @property
    def changes(self) -> Observable:
        return self._changes

    def on_change(self, callback: Callable[[FilterChange], None]) -> Callable[[], None]:
        """Subscribe to future changes; returns an unsubscribe function."""
        return self._changes.subscribe(on_next=callback).dispose

    def set_filters(
        self,
        new_state: FilterState | Updater,
        source: ChangeSource = ChangeSource.LOCAL,
    ) -> FilterState:
        """Replace the state, or apply an updater to the previous state.

        Updaters always see the latest state, so two rapid edits dispatched
        back to back cannot overwrite each other.

        Returns:
            The new state.
        """
        previous = self._state
        current = new_state(previous) if callable(new_state) else new_state
        if not isinstance(current, FilterState):
            raise TypeError(f"set_filters expects a FilterState, got {type(current).__name__}")

        self._state = current
        logger.debug(
            f"filters set source={source.value} active={current.active_filter_count}"
        )
        self._states.on_next(current)
        self._changes.on_next(FilterChange(previous, current, source))
        return current

    def clear_filters(self) -> FilterState:
        """Reset every filter to its default."""
        return self.set_filters(DEFAULT_FILTERS)

    # ------------------------------------------------------------------
    # Search box
    # ------------------------------------------------------------------

    def set_search_draft(self, text: str) -> FilterState:
        """Update the search term while the user types, without touching the URL."""
        return self.set_filters(
            lambda prev: prev.replace(search_term=text),
            source=ChangeSource.DRAFT,
        )

    def submit_search(self, term: str | None = None) -> FilterState:
        """Commit *term* (or the current draft) as a URL-synced change.

        Blank terms are ignored; use ``set_filters`` to clear the search.
        """
        text = (term if term is not None else self._state.search_term) or ""
        if not text.strip():
            return self._state
        return self.set_filters(lambda prev: prev.replace(search_term=text.strip()))
