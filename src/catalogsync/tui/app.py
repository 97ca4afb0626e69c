"""Storefront TUI application.

A Textual App that hosts the filter sync engine end to end: the address
bar plays the browser location field (backed by an in-memory history),
the filter panel and search box edit the FilterStore, and the
SyncController keeps the two in step.
"""

from __future__ import annotations

import asyncio
import logging

from reactivex.scheduler.eventloop import AsyncIOScheduler
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Header, Static

from catalogsync.config import SyncConfig
from catalogsync.models import ChangeSource, FilterChange, FilterState
from catalogsync.navigation import MemoryNavigationAdapter
from catalogsync.store import FilterStore
from catalogsync.sync import SyncController
from catalogsync.telemetry import Telemetry
from catalogsync.tui.messages import (
    AddressSubmitted,
    FiltersEdited,
    SearchDraftChanged,
    SearchSubmitted,
)
from catalogsync.tui.widgets import AddressBar, FilterPanel, SearchBox

logger = logging.getLogger(__name__)


class ShopApp(App):
    """Product-listing screen with URL-synchronized filters."""

    TITLE = "Storefront"
    SUB_TITLE = "Shop All Products"

    CSS = """
    #main {
        layout: horizontal;
        height: 1fr;
    }

    #listing {
        width: 1fr;
        padding: 0 1;
    }

    #summary {
        padding: 1 0;
    }
    """

    BINDINGS = [
        ("alt+left", "back", "Back"),
        ("alt+right", "forward", "Forward"),
        ("ctrl+l", "focus_address", "Address"),
        ("ctrl+r", "clear_filters", "Clear Filters"),
    ]

    def __init__(
        self,
        initial_query: str = "",
        config: SyncConfig | None = None,
        navigation: MemoryNavigationAdapter | None = None,
        telemetry: Telemetry | None = None,
    ) -> None:
        """Initialize the app.

        Args:
            initial_query: Query string present at first load.
            config: Sync settings; defaults if not provided.
            navigation: History backend. A fresh MemoryNavigationAdapter
                is created from *initial_query* if not provided.
            telemetry: Span factory for sync decisions. Defaults to the global tracer.
        """
        super().__init__()
        self.config = config if config is not None else SyncConfig()
        self.navigation = (
            navigation
            if navigation is not None
            else MemoryNavigationAdapter(initial_query, base_path=self.config.base_path)
        )
        self.telemetry = telemetry if telemetry is not None else Telemetry()
        self.filter_store = FilterStore()
        self.sync: SyncController | None = None
        self._unsubscribers: list = []

    def compose(self) -> ComposeResult:
        yield Header()
        yield AddressBar()
        with Horizontal(id="main"):
            yield FilterPanel()
            with Vertical(id="listing"):
                yield SearchBox()
                yield Static("", id="summary")
        yield Footer()

    def on_mount(self) -> None:
        """Wire store and history to the widgets, then start syncing."""
        self._unsubscribers = [
            self.filter_store.on_change(self._on_filters_changed),
            self.navigation.on_address_change(self._on_address_changed),
        ]
        self.sync = SyncController.from_config(
            self.filter_store,
            self.navigation,
            self.config,
            scheduler=AsyncIOScheduler(asyncio.get_running_loop()),
            telemetry=self.telemetry,
        )
        self.query_one(AddressBar).show_url(self.navigation.url)
        # Applies the query present at load, which renders the widgets
        self.sync.start()
        logger.info("app mounted")

    def on_unmount(self) -> None:
        if self.sync is not None:
            self.sync.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # ------------------------------------------------------------------
    # Store / history -> widgets
    # ------------------------------------------------------------------

    def _on_filters_changed(self, change: FilterChange) -> None:
        state = change.current
        if change.source is not ChangeSource.DRAFT:
            self.query_one(FilterPanel).show_filters(state)
            self.query_one(SearchBox).show_term(state.search_term)
        self._render_summary(state)

    def _on_address_changed(self, url: str) -> None:
        self.query_one(AddressBar).show_url(url)

    def _render_summary(self, state: FilterState) -> None:
        count = state.active_filter_count
        title = f'Search: "{state.search_term}"' if state.search_term else "Shop All Products"
        self.sub_title = title
        self.query_one("#summary", Static).update(
            f"{state.summary()}\n\n{count} active filter{'s' if count != 1 else ''}"
        )

    # ------------------------------------------------------------------
    # Message handlers
    # ------------------------------------------------------------------

    def on_filters_edited(self, event: FiltersEdited) -> None:
        self.filter_store.set_filters(event.filters)

    def on_address_submitted(self, event: AddressSubmitted) -> None:
        self.navigation.navigate_url(event.url)

    def on_search_draft_changed(self, event: SearchDraftChanged) -> None:
        if event.text.strip() == (self.filter_store.state.search_term or ""):
            return
        self.filter_store.set_search_draft(event.text)

    def on_search_submitted(self, event: SearchSubmitted) -> None:
        self.filter_store.submit_search(event.text)

    # ------------------------------------------------------------------
    # Key binding actions
    # ------------------------------------------------------------------

    def action_back(self) -> None:
        if not self.navigation.back():
            self.notify("No earlier page", severity="warning")

    def action_forward(self) -> None:
        if not self.navigation.forward():
            self.notify("No later page", severity="warning")

    def action_focus_address(self) -> None:
        self.query_one(AddressBar).focus()

    def action_clear_filters(self) -> None:
        self.filter_store.clear_filters()
