"""catalogsync: keeps storefront catalog filters and the URL in sync.

The codec turns a FilterState into a shareable query string and back; the
SyncController mirrors FilterStore edits into the address bar and address
changes back into the store without the two directions feeding each other.
"""

from catalogsync.codec import canonicalize, decode, encode, encode_query, format_query, parse_query
from catalogsync.models import (
    DEFAULT_FILTERS,
    AttributeFilters,
    ChangeSource,
    FilterChange,
    FilterState,
    Organic,
)
from catalogsync.navigation import (
    MemoryNavigationAdapter,
    NavigationAdapter,
    NavigationCause,
    NavigationEvent,
)
from catalogsync.store import FilterStore
from catalogsync.sync import SyncController

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_FILTERS",
    "AttributeFilters",
    "ChangeSource",
    "FilterChange",
    "FilterState",
    "FilterStore",
    "MemoryNavigationAdapter",
    "NavigationAdapter",
    "NavigationCause",
    "NavigationEvent",
    "Organic",
    "SyncController",
    "canonicalize",
    "decode",
    "encode",
    "encode_query",
    "format_query",
    "parse_query",
]
