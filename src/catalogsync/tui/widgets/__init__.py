"""TUI widget modules for the storefront filter screen."""

from .address_bar import AddressBar
from .filter_panel import FilterPanel
from .search_box import SearchBox

__all__ = [
    "AddressBar",
    "FilterPanel",
    "SearchBox",
]
