"""Terminal storefront for browsing with URL-synchronized catalog filters.

Provides a Textual-based listing screen whose address bar, back/forward
history and filter sidebar are kept in sync by the catalogsync engine.
"""

from __future__ import annotations

from catalogsync.config import SyncConfig


def run_tui(initial_query: str = "", config: SyncConfig | None = None) -> None:
    """Launch the TUI application.

    Imports are deferred so that the CLI starts quickly for non-TUI commands.

    Args:
        initial_query: Query string present at first load (e.g. from a shared link).
        config: Sync settings; file logging is enabled when ``config.log_dir`` is set.
    """
    from catalogsync.telemetry import configure_file_logging
    from catalogsync.tui.app import ShopApp

    config = config if config is not None else SyncConfig()
    if config.log_dir:
        configure_file_logging(config.log_dir, level=config.log_level)

    app = ShopApp(initial_query=initial_query, config=config)
    app.run()
