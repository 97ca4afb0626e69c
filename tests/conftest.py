"""Shared pytest fixtures for catalogsync tests.

Provides a manually advanced reactivex-style scheduler (so guard-window
timing is deterministic), an in-memory navigation adapter, a filter store
and a running SyncController wired to both.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from catalogsync.navigation import MemoryNavigationAdapter
from catalogsync.store import FilterStore
from catalogsync.sync import SyncController
from catalogsync.telemetry import Telemetry


class _ScheduledItem:
    def __init__(self, due: float, action: Callable, state: Any) -> None:
        self.due = due
        self.action = action
        self.state = state
        self.disposed = False

    def dispose(self) -> None:
        self.disposed = True


class ManualScheduler:
    """Virtual-time scheduler: actions only run when :meth:`advance` is called.

    Implements the ``schedule_relative`` subset SyncController uses; actions
    are invoked as ``action(scheduler, state)`` like reactivex schedulers do.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._items: list[_ScheduledItem] = []

    def schedule_relative(self, duetime: float, action: Callable, state: Any = None) -> _ScheduledItem:
        item = _ScheduledItem(self.now + float(duetime), action, state)
        self._items.append(item)
        return item

    @property
    def pending(self) -> int:
        return sum(1 for item in self._items if not item.disposed)

    def advance(self, seconds: float) -> None:
        """Move virtual time forward, running every action that falls due."""
        target = self.now + seconds
        while True:
            due = [i for i in self._items if not i.disposed and i.due <= target]
            if not due:
                break
            item = min(due, key=lambda i: i.due)
            item.disposed = True
            self.now = item.due
            item.action(self, item.state)
        self.now = target
        self._items = [i for i in self._items if not i.disposed]


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def navigation() -> MemoryNavigationAdapter:
    """In-memory history starting at an empty query."""
    return MemoryNavigationAdapter()


@pytest.fixture
def store() -> FilterStore:
    return FilterStore()


@pytest.fixture
def telemetry():
    """``(Telemetry, InMemorySpanExporter)`` pair for span assertions."""
    return Telemetry.in_memory()


@pytest.fixture
def controller(store, navigation, scheduler, telemetry) -> SyncController:
    """A started SyncController; stopped again after the test."""
    tel, _ = telemetry
    ctrl = SyncController(store, navigation, guard_window_seconds=0.1, scheduler=scheduler, telemetry=tel)
    ctrl.start()
    yield ctrl
    ctrl.stop()
