"""SyncController: keeps FilterStore and the address bar in step without loops.

Local edits are encoded and written with ``replace_query``; address
changes are decoded and applied to the store. Every self-initiated write
is remembered two ways so its echo can be recognised and dropped:

* a monotonically increasing write sequence number, handed to the host
  as the entry's out-of-band token. When an event carries a token, echo
  detection is an exact comparison and needs no timer.
* the written query text plus a short guard window. Used for hosts that
  report changes without tokens: an event whose query equals the last
  written one while the window is open is treated as an echo. A genuine
  navigation to the same query inside the window is masked; that is an
  accepted approximation.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Callable
from typing import TYPE_CHECKING

from reactivex.abc import DisposableBase, SchedulerBase
from reactivex.scheduler import TimeoutScheduler
from reactivex.scheduler.eventloop import AsyncIOScheduler

from catalogsync.codec import decode, encode_query
from catalogsync.constants import GUARD_WINDOW_SECONDS
from catalogsync.models import ChangeSource, FilterChange, FilterState
from catalogsync.navigation import NavigationAdapter, NavigationCause, NavigationEvent, normalize_query
from catalogsync.store import FilterStore
from catalogsync.sync.fsm import create_fsm
from catalogsync.telemetry import Telemetry

if TYPE_CHECKING:
    from catalogsync.config import SyncConfig

logger = logging.getLogger(__name__)


class SyncController:
    """Bidirectional FilterStore <-> NavigationAdapter synchronization.

    Args:
        store: The filter store to keep in sync.
        navigation: Host address-bar adapter.
        guard_window_seconds: How long after a write an identical, token-less
            address change is still treated as our own echo.
        scheduler: reactivex scheduler for the guard-window timer. Defaults to
            an AsyncIOScheduler on the running loop, or a TimeoutScheduler
            when no loop is running.
        telemetry: Span factory for sync decisions. Defaults to the global tracer.
    """

    def __init__(
        self,
        store: FilterStore,
        navigation: NavigationAdapter,
        guard_window_seconds: float = GUARD_WINDOW_SECONDS,
        scheduler: SchedulerBase | None = None,
        telemetry: Telemetry | None = None,
    ) -> None:
        if guard_window_seconds < 0:
            raise ValueError(f"guard_window_seconds must be >= 0, got {guard_window_seconds}")
        self.store = store
        self.navigation = navigation
        self.guard_window_seconds = guard_window_seconds
        self.telemetry = telemetry if telemetry is not None else Telemetry()
        self._scheduler = scheduler
        self._fsm = create_fsm()
        self._lock = threading.RLock()

        self._guard_timer: DisposableBase | None = None
        self._guard_gen: int = 0  # Bumped on every timer (re)start so stale callbacks drop
        self._last_written_query: str | None = None
        self._write_sequence: int = 0
        self._pending_token: int | None = None

        # Work that arrived while applying_external, replayed in arrival order
        self._queue: deque[FilterState | NavigationEvent] = deque()
        self._draining = False
        self._unsubscribers: list[Callable[[], None]] = []

    @classmethod
    def from_config(
        cls,
        store: FilterStore,
        navigation: NavigationAdapter,
        config: SyncConfig,
        scheduler: SchedulerBase | None = None,
        telemetry: Telemetry | None = None,
    ) -> SyncController:
        return cls(
            store,
            navigation,
            guard_window_seconds=config.guard_window_seconds,
            scheduler=scheduler,
            telemetry=telemetry,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        """Current FSM state: 'idle', 'writing_locally' or 'applying_external'."""
        return self._fsm.current_state.value

    @property
    def last_written_query(self) -> str | None:
        return self._last_written_query

    @property
    def write_sequence(self) -> int:
        return self._write_sequence

    @property
    def pending_local_changes(self) -> int:
        return sum(1 for item in self._queue if isinstance(item, FilterState))

    @property
    def is_running(self) -> bool:
        return bool(self._unsubscribers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to both sides and apply the address present at first load."""
        if self.is_running:
            return
        self._unsubscribers = [
            self.store.on_change(self._on_store_change),
            self.navigation.on_external_change(self.handle_external_change),
        ]
        query = self.navigation.current_query()
        with self.telemetry.span("start", query=query):
            logger.info(f"sync started query={query!r}")
            self.handle_external_change(NavigationEvent(query, NavigationCause.LOAD))

    def stop(self) -> None:
        """Unsubscribe and cancel the guard window."""
        with self._lock:
            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers = []
            self._cancel_guard_timer()
            if self.state == "writing_locally":
                self._fsm.abort_local_write()
            self._queue.clear()
        logger.info("sync stopped")

    def __enter__(self) -> SyncController:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Local -> URL
    # ------------------------------------------------------------------

    def _on_store_change(self, change: FilterChange) -> None:
        if change.source is not ChangeSource.LOCAL:
            return
        with self._lock:
            if self.state == "applying_external":
                self._queue.append(change.current)
                logger.debug(
                    f"local change queued during external apply queued={len(self._queue)}"
                )
                return
            self._write_local(change.current)

    def _write_local(self, state: FilterState) -> None:
        query = encode_query(state)
        with self.telemetry.span("local_change", query=query, state=self.state) as span:

            if query == normalize_query(self.navigation.current_query()):
                span.mark(skipped=True)
                logger.debug(f"address already current query={query!r}")
                return

            self._fsm.begin_local_write()
            self._write_sequence += 1
            # Recorded before the write: hosts may echo synchronously from replace_query
            self._last_written_query = query
            self._pending_token = self._write_sequence
            self._restart_guard_timer()
            try:
                self.navigation.replace_query(query, token=self._write_sequence)
            except Exception as e:
                span.write_failed(e)
                logger.warning(
                    f"address write failed query={query!r} error={e!r}; "
                    "filters stay applied in memory"
                )
                self._cancel_guard_timer()
                self._last_written_query = None
                self._pending_token = None
                if self.state == "writing_locally":
                    self._fsm.abort_local_write()
                return

            span.mark(write_failed=False)
            logger.info(
                f"address written query={query!r} seq={self._write_sequence}"
            )

    # ------------------------------------------------------------------
    # URL -> local
    # ------------------------------------------------------------------

    def handle_external_change(self, event: NavigationEvent) -> None:
        """React to an address change reported by the host."""
        with self._lock:
            if self.state == "applying_external":
                self._queue.append(event)
                return

            query = normalize_query(event.query)
            with self.telemetry.span(
                "external_change", query=query, cause=event.cause.value, state=self.state
            ) as span:

                echo = self._is_echo(event, query)
                span.mark(echo=echo)
                if echo:
                    logger.debug(
                        f"echo dropped query={query!r} token={event.token}"
                    )
                    return

                if self.state == "writing_locally":
                    self._cancel_guard_timer()
                self._fsm.begin_external_apply()
                try:
                    decoded = decode(query)
                    self._last_written_query = None
                    self._pending_token = None
                    self.store.set_filters(decoded, source=ChangeSource.EXTERNAL)
                    logger.info(
                        f"external change applied cause={event.cause.value} "
                        f"query={query!r} active={decoded.active_filter_count}"
                    )
                finally:
                    self._fsm.finish_external_apply()

            self._drain_queue()

    def _is_echo(self, event: NavigationEvent, query: str) -> bool:
        if event.token is not None:
            return event.token == self._pending_token
        return self.state == "writing_locally" and query == self._last_written_query

    def _drain_queue(self) -> None:
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue and self.state != "applying_external":
                item = self._queue.popleft()
                if isinstance(item, NavigationEvent):
                    self.handle_external_change(item)
                else:
                    self._write_local(item)
        finally:
            self._draining = False

    # ------------------------------------------------------------------
    # Guard window
    # ------------------------------------------------------------------

    def _get_scheduler(self) -> SchedulerBase:
        if self._scheduler is None:
            try:
                self._scheduler = AsyncIOScheduler(asyncio.get_running_loop())
            except RuntimeError:
                self._scheduler = TimeoutScheduler()
        return self._scheduler

    def _restart_guard_timer(self) -> None:
        self._cancel_guard_timer()
        self._guard_gen += 1
        self._guard_timer = self._get_scheduler().schedule_relative(
            self.guard_window_seconds,
            self._on_guard_elapsed,
            state=self._guard_gen,
        )

    def _cancel_guard_timer(self) -> None:
        if self._guard_timer is not None:
            self._guard_timer.dispose()
            self._guard_timer = None
        self._guard_gen += 1

    def _on_guard_elapsed(self, scheduler: SchedulerBase, gen: int | None = None) -> None:
        with self._lock:
            if gen != self._guard_gen:
                return  # Superseded by a newer write or cancelled
            self._guard_timer = None
            if self.state == "writing_locally":
                self._fsm.guard_elapsed()
                logger.debug("guard window closed")
