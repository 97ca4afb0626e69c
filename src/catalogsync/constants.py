"""Project-wide named constants.

Query-string keys are a public contract: links shared by users must keep
resolving, so none of these may be renamed.
"""

# Price slider domain. A range equal to the default is never written to the URL.
DEFAULT_MIN_PRICE: int = 0
DEFAULT_MAX_PRICE: int = 1000

# Query-string keys
KEY_MIN_PRICE = "minPrice"
KEY_MAX_PRICE = "maxPrice"
KEY_CATEGORIES = "categories"
KEY_BRANDS = "brands"
KEY_DISCOUNTS = "discounts"
KEY_ATTRIBUTES = "attributes"
KEY_RATING = "rating"
KEY_IN_STOCK = "inStock"
KEY_IS_BESTSELLER = "isBestseller"
KEY_IS_FEATURED = "isFeatured"
KEY_SEARCH_TERM = "searchTerm"
KEY_ORGANIC = "organic"

# Older storefront links used ?search= instead of ?searchTerm=
LEGACY_KEY_SEARCH = "search"

# Values that JavaScript front-ends leak into URLs when a field was never set.
SENTINEL_VALUES: frozenset[str] = frozenset({"undefined", "null"})

LIST_SEPARATOR = ","

# Empirically chosen: long enough to span a host that echoes replace_query()
# back as a change event, short enough not to swallow rapid user edits.
GUARD_WINDOW_SECONDS: float = 0.1

DEFAULT_BASE_PATH = "/shop"
