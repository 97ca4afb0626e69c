"""Address bar widget: the terminal stand-in for the browser location field."""

from __future__ import annotations

import logging

from textual.widgets import Input

from catalogsync.tui.messages import AddressSubmitted

logger = logging.getLogger(__name__)


class AddressBar(Input):
    """Shows the current URL; Enter navigates to whatever was typed.

    Programmatic updates go through :meth:`show_url` and never post
    AddressSubmitted, so only user navigation reaches the App.
    """

    DEFAULT_CSS = """
    AddressBar {
        dock: top;
        height: 3;
        padding: 0 1;
        border-bottom: solid $primary;
    }
    """

    def __init__(self) -> None:
        super().__init__(placeholder="/shop?categories=...", id="address-bar")

    def show_url(self, url: str) -> None:
        """Display *url*; cursor moves to the end like a browser's location bar."""
        if self.value != url:
            self.value = url
            self.cursor_position = len(url)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input is not self:
            return
        event.stop()
        url = event.value.strip()
        logger.info(f"address submitted url={url!r}")
        self.post_message(AddressSubmitted(url=url))
