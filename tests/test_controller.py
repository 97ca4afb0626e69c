"""Tests for SyncController: local writes, echo suppression and external apply.

Guard-window timing runs on the ManualScheduler from conftest, so every
test controls exactly when the window closes.
"""

from __future__ import annotations

import asyncio
import logging

import pytest
from reactivex.scheduler import TimeoutScheduler
from reactivex.scheduler.eventloop import AsyncIOScheduler

from catalogsync.codec import encode_query, parse_query
from catalogsync.config import SyncConfig
from catalogsync.models import ChangeSource, FilterChange, FilterState, Organic
from catalogsync.navigation import MemoryNavigationAdapter, NavigationCause, NavigationEvent
from catalogsync.store import FilterStore
from catalogsync.sync import SyncController
from catalogsync.telemetry import Telemetry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FailingNavigation(MemoryNavigationAdapter):
    """Host whose address writes always fail (e.g. a sandboxed iframe)."""

    def replace_query(self, query: str, token: int | None = None) -> None:
        raise RuntimeError("history is read-only")


def make_controller(navigation, scheduler, store=None, telemetry=None) -> SyncController:
    ctrl = SyncController(
        store if store is not None else FilterStore(),
        navigation,
        guard_window_seconds=0.1,
        scheduler=scheduler,
        telemetry=telemetry if telemetry is not None else Telemetry(),
    )
    ctrl.start()
    return ctrl


@pytest.fixture
def changes(store) -> list[FilterChange]:
    received: list[FilterChange] = []
    store.on_change(received.append)
    return received


def _span_attrs(exporter, name: str) -> list[dict]:
    return [dict(s.attributes) for s in exporter.get_finished_spans() if s.name == name]


# ---------------------------------------------------------------------------
# Construction and lifecycle
# ---------------------------------------------------------------------------


def test_negative_guard_window_rejected(store, navigation):
    with pytest.raises(ValueError):
        SyncController(store, navigation, guard_window_seconds=-0.1)


def test_from_config_uses_window(store, navigation, scheduler):
    ctrl = SyncController.from_config(
        store, navigation, SyncConfig(guard_window_seconds=0.25), scheduler=scheduler
    )
    assert ctrl.guard_window_seconds == 0.25


def test_start_applies_query_present_at_load(scheduler):
    nav = MemoryNavigationAdapter("categories=fruits&organic=true")
    ctrl = make_controller(nav, scheduler)
    assert ctrl.store.state == FilterState(categories={"fruits"}, organic=Organic.ONLY)
    assert ctrl.state == "idle"
    # Applying the initial query never writes it back
    assert nav.replace_count == 0


def test_start_is_idempotent(controller, store, navigation):
    controller.start()
    store.set_filters(FilterState(rating=4))
    assert navigation.replace_count == 1


def test_stop_unsubscribes_and_cancels_timer(controller, store, navigation, scheduler):
    store.set_filters(FilterState(rating=4))
    controller.stop()
    assert not controller.is_running
    assert controller.state == "idle"
    assert scheduler.pending == 0
    store.set_filters(FilterState(rating=5))
    assert navigation.current_query() == "rating=4"


def test_context_manager(store, navigation, scheduler):
    with SyncController(store, navigation, scheduler=scheduler) as ctrl:
        assert ctrl.is_running
        store.set_filters(FilterState(is_featured=True))
    assert not ctrl.is_running
    assert navigation.current_query() == "isFeatured=true"


# ---------------------------------------------------------------------------
# Local -> URL
# ---------------------------------------------------------------------------


def test_local_change_replaces_query(controller, store, navigation, scheduler):
    store.set_filters(FilterState(categories={"fruits"}))
    assert navigation.current_query() == "categories=fruits"
    # Replace, not push: no new history entry per edit
    assert navigation.history == ["categories=fruits"]
    assert controller.state == "writing_locally"
    assert controller.last_written_query == "categories=fruits"
    assert controller.write_sequence == 1
    assert navigation.current_token == 1

    scheduler.advance(0.2)
    assert controller.state == "idle"


def test_guard_window_restarts_on_rapid_edits(controller, store, scheduler):
    store.set_filters(FilterState(rating=1))
    scheduler.advance(0.06)
    store.set_filters(FilterState(rating=2))
    assert scheduler.pending == 1
    scheduler.advance(0.06)
    assert controller.state == "writing_locally"
    scheduler.advance(0.1)
    assert controller.state == "idle"
    assert controller.write_sequence == 2


def test_rapid_updaters_are_not_lost(controller, store, navigation):
    store.set_filters(lambda s: s.replace(categories=s.categories | {"fruits"}))
    store.set_filters(lambda s: s.replace(brands=s.brands | {"FarmCo"}))
    assert parse_query(navigation.current_query()) == {
        "categories": "fruits",
        "brands": "FarmCo",
    }


def test_unchanged_query_is_not_rewritten(scheduler):
    nav = MemoryNavigationAdapter("rating=4")
    ctrl = make_controller(nav, scheduler)
    ctrl.store.set_filters(FilterState(rating=4))
    assert nav.replace_count == 0
    assert ctrl.state == "idle"


def test_draft_and_external_changes_are_not_written(controller, store, navigation):
    store.set_search_draft("app")
    store.set_filters(FilterState(rating=3), source=ChangeSource.EXTERNAL)
    assert navigation.replace_count == 0


def test_submit_search_writes_term(controller, store, navigation):
    store.set_search_draft("apples")
    store.submit_search()
    assert navigation.current_query() == "searchTerm=apples"


def test_clear_filters_empties_query(controller, store, navigation):
    store.set_filters(FilterState(rating=4, in_stock=False))
    store.clear_filters()
    assert navigation.current_query() == ""
    assert navigation.url == "/shop"


def test_write_failure_is_logged_and_swallowed(scheduler, caplog):
    nav = FailingNavigation()
    tel, exporter = Telemetry.in_memory()
    ctrl = make_controller(nav, scheduler, telemetry=tel)

    with caplog.at_level(logging.WARNING, logger="catalogsync"):
        ctrl.store.set_filters(FilterState(rating=4))

    assert ctrl.store.state.rating == 4
    assert ctrl.state == "idle"
    assert ctrl.last_written_query is None
    assert scheduler.pending == 0
    assert any("address write failed" in r.getMessage() for r in caplog.records)
    assert _span_attrs(exporter, "sync.local_change")[-1]["sync.write_failed"] is True


# ---------------------------------------------------------------------------
# Echo suppression
# ---------------------------------------------------------------------------


def test_echo_with_token_is_dropped(scheduler):
    nav = MemoryNavigationAdapter(echo_writes=True)
    store = FilterStore()
    received: list[FilterChange] = []
    store.on_change(received.append)
    tel, exporter = Telemetry.in_memory()
    make_controller(nav, scheduler, store=store, telemetry=tel)
    received.clear()

    store.set_filters(FilterState(brands={"FarmCo"}))

    assert [c.source for c in received] == [ChangeSource.LOCAL]
    assert nav.replace_count == 1
    assert _span_attrs(exporter, "sync.external_change")[-1]["sync.echo"] is True


def test_token_echo_needs_no_guard_window(scheduler):
    nav = MemoryNavigationAdapter(echo_writes=True)
    ctrl = make_controller(nav, scheduler)
    ctrl.store.set_filters(FilterState(rating=2))
    scheduler.advance(1.0)
    assert ctrl.state == "idle"
    # A late echo still carries our token
    ctrl.handle_external_change(NavigationEvent("rating=2", NavigationCause.REPLACE, token=1))
    assert nav.replace_count == 1


def test_tokenless_echo_dropped_inside_window(controller, store, changes):
    store.set_filters(FilterState(rating=2))
    changes.clear()
    controller.handle_external_change(NavigationEvent("rating=2", NavigationCause.REPLACE))
    assert changes == []
    assert controller.state == "writing_locally"


def test_tokenless_same_query_applied_after_window(controller, store, changes, scheduler):
    store.set_filters(FilterState(rating=2))
    scheduler.advance(0.2)
    changes.clear()
    controller.handle_external_change(NavigationEvent("rating=2", NavigationCause.PUSH))
    assert [c.source for c in changes] == [ChangeSource.EXTERNAL]


def test_foreign_token_is_not_an_echo(controller, store, changes):
    store.set_filters(FilterState(rating=2))
    changes.clear()
    controller.handle_external_change(NavigationEvent("rating=2", NavigationCause.POP, token=99))
    assert [c.source for c in changes] == [ChangeSource.EXTERNAL]
    assert controller.state == "idle"
    assert controller.last_written_query is None


def test_different_query_inside_window_is_applied(controller, store, navigation, scheduler):
    store.set_filters(FilterState(rating=2))
    navigation.navigate("categories=dairy")
    assert store.state == FilterState(categories={"dairy"})
    assert controller.state == "idle"
    assert scheduler.pending == 0


# ---------------------------------------------------------------------------
# URL -> local
# ---------------------------------------------------------------------------


def test_external_navigation_updates_store_without_write(controller, store, navigation, changes):
    navigation.navigate("brands=FarmCo&isBestseller=true")
    assert store.state == FilterState(brands={"FarmCo"}, is_bestseller=True)
    assert changes[-1].source is ChangeSource.EXTERNAL
    assert navigation.replace_count == 0


def test_back_and_forward_restore_filters(controller, store, navigation, scheduler):
    store.set_filters(FilterState(rating=4))
    scheduler.advance(0.2)
    navigation.navigate("rating=2")
    assert store.state.rating == 2

    navigation.back()
    assert store.state.rating == 4
    navigation.forward()
    assert store.state.rating == 2
    assert navigation.replace_count == 1


def test_back_inside_guard_window(controller, store, navigation):
    navigation.navigate("rating=1")
    store.set_filters(FilterState(rating=5))
    navigation.back()
    assert store.state == FilterState()
    assert controller.state == "idle"


def test_local_change_during_apply_is_queued(controller, store, navigation):
    def feature_everything(change: FilterChange) -> None:
        if change.source is ChangeSource.EXTERNAL and not change.current.is_featured:
            store.set_filters(lambda s: s.replace(is_featured=True))
            pending.append(controller.pending_local_changes)

    pending: list[int] = []
    store.on_change(feature_everything)
    navigation.navigate("rating=2")

    assert pending == [1]
    assert store.state == FilterState(rating=2, is_featured=True)
    assert navigation.current_query() == "rating=2&isFeatured=true"
    assert controller.pending_local_changes == 0
    assert controller.state == "writing_locally"


def test_navigation_during_apply_is_queued(controller, store, navigation):
    def redirect(change: FilterChange) -> None:
        if change.source is ChangeSource.EXTERNAL and change.current.rating == 2:
            navigation.navigate("rating=3")

    store.on_change(redirect)
    navigation.navigate("rating=2")
    assert store.state.rating == 3
    assert navigation.history == ["", "rating=2", "rating=3"]


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


def test_shared_link_reproduces_filters(controller, store, navigation, scheduler):
    store.set_filters(lambda s: s.replace(categories={"vegetables"}))
    store.set_filters(lambda s: s.replace(brands={"FarmCo"}))
    store.set_filters(lambda s: s.replace(price_range=(10, 40)))
    scheduler.advance(0.2)

    assert parse_query(navigation.current_query()) == {
        "categories": "vegetables",
        "brands": "FarmCo",
        "minPrice": "10",
        "maxPrice": "40",
    }

    # Open the same link in a fresh session
    reopened = make_controller(MemoryNavigationAdapter(navigation.current_query()), scheduler)
    assert reopened.store.state == store.state


def test_spans_recorded(controller, store, navigation, telemetry):
    _, exporter = telemetry
    store.set_filters(FilterState(rating=4))
    navigation.navigate("rating=1")

    names = [s.name for s in exporter.get_finished_spans()]
    assert "sync.start" in names
    assert "sync.local_change" in names
    assert "sync.external_change" in names
    local = _span_attrs(exporter, "sync.local_change")[-1]
    assert local["sync.query"] == encode_query(FilterState(rating=4))
    external = _span_attrs(exporter, "sync.external_change")[-1]
    assert external["sync.cause"] == "push"
    assert external["sync.echo"] is False


# ---------------------------------------------------------------------------
# Default schedulers
# ---------------------------------------------------------------------------


def test_default_scheduler_without_loop_is_timeout(store, navigation):
    ctrl = SyncController(store, navigation)
    assert isinstance(ctrl._get_scheduler(), TimeoutScheduler)


async def test_default_scheduler_inside_loop_closes_window(store, navigation):
    ctrl = SyncController(store, navigation, guard_window_seconds=0.01)
    ctrl.start()
    store.set_filters(FilterState(rating=4))
    assert isinstance(ctrl._get_scheduler(), AsyncIOScheduler)
    assert ctrl.state == "writing_locally"
    await asyncio.sleep(0.1)
    assert ctrl.state == "idle"
    ctrl.stop()
