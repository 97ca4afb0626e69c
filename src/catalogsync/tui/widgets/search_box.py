"""Search box: draft text while typing, committed to the URL on Enter."""

from __future__ import annotations

import logging

from textual.widgets import Input

from catalogsync.tui.messages import SearchDraftChanged, SearchSubmitted

logger = logging.getLogger(__name__)


class SearchBox(Input):
    """Search input mirroring the storefront's search semantics.

    Every keystroke posts SearchDraftChanged (filters update, address does
    not). Enter posts SearchSubmitted, which commits a non-blank term to
    the address.
    """

    DEFAULT_CSS = """
    SearchBox {
        height: 3;
        padding: 0 1;
    }
    """

    def __init__(self) -> None:
        super().__init__(placeholder="Search products...", id="search-box")

    def show_term(self, term: str | None) -> None:
        """Reflect an externally applied search term."""
        text = term or ""
        if self.value.strip() != text:
            self.value = text

    def on_input_changed(self, event: Input.Changed) -> None:
        # Only process events from this input (not bubbled from children)
        if event.input is not self:
            return
        event.stop()
        self.post_message(SearchDraftChanged(text=event.value))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input is not self:
            return
        event.stop()
        term = event.value.strip()
        if term:
            logger.info(f"search submitted term={term!r}")
            self.post_message(SearchSubmitted(text=term))
