"""Custom Textual Message types for inter-widget communication.

Widgets never touch the FilterStore or the navigation adapter directly:
they post these messages and the App applies them.
"""

from __future__ import annotations

from textual.message import Message

from catalogsync.models import FilterState


class FiltersEdited(Message):
    """Fired by the filter panel when the user changes a filter control."""

    def __init__(self, filters: FilterState) -> None:
        self.filters = filters
        super().__init__()


class AddressSubmitted(Message):
    """Fired by the address bar when the user presses Enter on a URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__()


class SearchDraftChanged(Message):
    """Fired on every keystroke in the search box."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__()


class SearchSubmitted(Message):
    """Fired when the user presses Enter in the search box."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__()
