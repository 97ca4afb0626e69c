"""Data models and enums for catalog filter state."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

from catalogsync.constants import DEFAULT_MAX_PRICE, DEFAULT_MIN_PRICE


class Organic(str, Enum):
    """Tri-state organic filter. UNSET is a real state, not a falsy ``EXCLUDED``."""

    ONLY = "true"
    EXCLUDED = "false"
    UNSET = "unset"

    @classmethod
    def coerce(cls, value: object) -> Organic:
        """Map ``True``/``False``/``None`` and their string forms onto the enum."""
        if isinstance(value, Organic):
            return value
        if value is True:
            return cls.ONLY
        if value is False:
            return cls.EXCLUDED
        if value is None:
            return cls.UNSET
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError(f"Invalid organic value: {value!r}")

    def to_bool(self) -> bool | None:
        """Return ``True``/``False``, or ``None`` when unset."""
        if self is Organic.UNSET:
            return None
        return self is Organic.ONLY


class ChangeSource(str, Enum):
    """Who caused a FilterStore change."""

    LOCAL = "local"  # user edited a filter control
    EXTERNAL = "external"  # decoded from an address change
    DRAFT = "draft"  # uncommitted search-box typing; never written to the URL


def _clean_members(values: Iterable[object]) -> frozenset[str]:
    """Keep only non-blank string members."""
    return frozenset(v for v in values if isinstance(v, str) and v.strip() != "")


def _is_string_list(values: object) -> bool:
    return isinstance(values, (list, tuple, set, frozenset)) and all(
        isinstance(v, str) for v in values
    )


class AttributeFilters(Mapping[str, frozenset[str]]):
    """Immutable mapping of attribute name to the set of accepted values.

    Example: ``AttributeFilters({"color": {"red", "blue"}})``. Names that are
    blank or whose value set is empty are dropped, so an attribute with no
    selected values is indistinguishable from an absent attribute.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Iterable[str] | str] | None = None) -> None:
        cleaned: dict[str, frozenset[str]] = {}
        for name, values in (data or {}).items():
            if not isinstance(name, str) or not name.strip():
                continue
            if isinstance(values, str):
                values = [values]
            members = _clean_members(values)
            if members:
                cleaned[name] = members
        self._data = cleaned

    def __getitem__(self, name: str) -> frozenset[str]:
        return self._data[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))

    def __repr__(self) -> str:
        return f"AttributeFilters({self.to_dict()!r})"

    def with_values(self, name: str, values: Iterable[str]) -> AttributeFilters:
        """Return a copy with *name* set to *values* (removed if empty)."""
        merged: dict[str, Iterable[str]] = dict(self._data)
        merged[name] = list(values)
        return AttributeFilters(merged)

    def to_dict(self) -> dict[str, list[str]]:
        """Plain dict with sorted value lists (stable JSON output)."""
        return {name: sorted(values) for name, values in sorted(self._data.items())}


@dataclass(frozen=True)
class FilterState:
    """Catalog filter criteria for the product-listing screen.

    Instances are immutable values; derive new ones with :meth:`replace`.
    Construction normalizes loose input (lists become frozensets, blank
    members are dropped, the search term is trimmed) so that two states
    that filter the same products compare equal.
    """

    price_range: tuple[int, int] = (DEFAULT_MIN_PRICE, DEFAULT_MAX_PRICE)
    categories: frozenset[str] = frozenset()
    brands: frozenset[str] = frozenset()
    attributes: AttributeFilters = field(default_factory=AttributeFilters)
    selected_discounts: frozenset[str] = frozenset()
    rating: int | None = None
    in_stock: bool = True
    is_bestseller: bool = False
    is_featured: bool = False
    search_term: str | None = None
    organic: Organic = Organic.UNSET

    def __post_init__(self) -> None:
        low, high = tuple(self.price_range)
        for bound in (low, high):
            if isinstance(bound, bool) or not isinstance(bound, int):
                raise ValueError(f"Price bounds must be integers, got {self.price_range!r}")
        if low < 0 or high < 0 or low > high:
            raise ValueError(f"Invalid price range {self.price_range!r}: need 0 <= min <= max")
        if self.rating is not None and (
            isinstance(self.rating, bool) or not isinstance(self.rating, int) or self.rating < 0
        ):
            raise ValueError(f"Rating must be a non-negative integer, got {self.rating!r}")

        set_attr = object.__setattr__
        set_attr(self, "price_range", (low, high))
        set_attr(self, "categories", _clean_members(self.categories))
        set_attr(self, "brands", _clean_members(self.brands))
        set_attr(self, "selected_discounts", _clean_members(self.selected_discounts))
        if not isinstance(self.attributes, AttributeFilters):
            set_attr(self, "attributes", AttributeFilters(self.attributes))
        term = self.search_term.strip() if isinstance(self.search_term, str) else None
        set_attr(self, "search_term", term or None)
        set_attr(self, "organic", Organic.coerce(self.organic))

    def replace(self, **changes: object) -> FilterState:
        """Return a copy with *changes* applied (reducer-style updates)."""
        return dataclasses.replace(self, **changes)

    @property
    def has_price_filter(self) -> bool:
        low, high = self.price_range
        return low > DEFAULT_MIN_PRICE or high < DEFAULT_MAX_PRICE

    @property
    def active_filter_count(self) -> int:
        """Number of active filter groups (the price range counts once)."""
        return sum(
            (
                self.has_price_filter,
                bool(self.categories),
                bool(self.brands),
                bool(self.attributes),
                bool(self.selected_discounts),
                self.rating is not None,
                not self.in_stock,
                self.is_bestseller,
                self.is_featured,
                self.search_term is not None,
                self.organic is not Organic.UNSET,
            )
        )

    def is_default(self) -> bool:
        """Return True if no filter narrows the catalog."""
        return self == DEFAULT_FILTERS

    def summary(self) -> str:
        """Human-readable one-line description of the active filters."""
        parts: list[str] = []
        if self.search_term:
            parts.append(f'Search: "{self.search_term}"')
        if self.has_price_filter:
            parts.append(f"Price: {self.price_range[0]}-{self.price_range[1]}")
        if self.categories:
            parts.append(f"Categories: {', '.join(sorted(self.categories))}")
        if self.brands:
            parts.append(f"Brands: {', '.join(sorted(self.brands))}")
        for name, values in self.attributes.to_dict().items():
            parts.append(f"{name}: {', '.join(values)}")
        if self.selected_discounts:
            parts.append(f"Discounts: {', '.join(sorted(self.selected_discounts))}")
        if self.rating is not None:
            parts.append(f"Rating: {self.rating}+")
        if not self.in_stock:
            parts.append("Including out of stock")
        if self.is_bestseller:
            parts.append("Bestsellers")
        if self.is_featured:
            parts.append("Featured")
        if self.organic is Organic.ONLY:
            parts.append("Organic only")
        elif self.organic is Organic.EXCLUDED:
            parts.append("Non-organic only")
        return " | ".join(parts) if parts else "All products (no filters)"

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "price_range": list(self.price_range),
            "categories": sorted(self.categories),
            "brands": sorted(self.brands),
            "attributes": self.attributes.to_dict(),
            "selected_discounts": sorted(self.selected_discounts),
            "rating": self.rating,
            "in_stock": self.in_stock,
            "is_bestseller": self.is_bestseller,
            "is_featured": self.is_featured,
            "search_term": self.search_term,
            "organic": self.organic.to_bool(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> FilterState:
        """Create from a dictionary produced by :meth:`to_dict`.

        Missing keys take their defaults; wrongly-typed values raise
        ``ValueError``.
        """
        kwargs: dict[str, object] = {}
        if "price_range" in data:
            price = data["price_range"]
            if not isinstance(price, (list, tuple)) or len(price) != 2:
                raise ValueError(f"price_range must be a [min, max] pair, got {price!r}")
            kwargs["price_range"] = tuple(price)
        for name in ("categories", "brands", "selected_discounts"):
            if name in data:
                values = data[name]
                if not _is_string_list(values):
                    raise ValueError(f"{name} must be a list of strings, got {values!r}")
                kwargs[name] = frozenset(values)
        if "attributes" in data:
            attributes = data["attributes"]
            if not isinstance(attributes, Mapping):
                raise ValueError(f"attributes must be an object, got {attributes!r}")
            for attr_name, values in attributes.items():
                if not isinstance(values, str) and not _is_string_list(values):
                    raise ValueError(
                        f"attribute {attr_name!r} must be a string or list of strings, "
                        f"got {values!r}"
                    )
            kwargs["attributes"] = AttributeFilters(attributes)
        for name in ("in_stock", "is_bestseller", "is_featured"):
            if name in data:
                if not isinstance(data[name], bool):
                    raise ValueError(f"{name} must be a boolean, got {data[name]!r}")
                kwargs[name] = data[name]
        if "rating" in data:
            kwargs["rating"] = data["rating"]
        if "search_term" in data:
            term = data["search_term"]
            if term is not None and not isinstance(term, str):
                raise ValueError(f"search_term must be a string, got {term!r}")
            kwargs["search_term"] = term
        if "organic" in data:
            kwargs["organic"] = Organic.coerce(data["organic"])
        return cls(**kwargs)  # type: ignore[arg-type]


DEFAULT_FILTERS = FilterState()


@dataclass(frozen=True)
class FilterChange:
    """Notification payload delivered to FilterStore subscribers."""

    previous: FilterState
    current: FilterState
    source: ChangeSource = ChangeSource.LOCAL
