"""FilterState <-> URL query-string codec.

``encode`` and ``decode`` are pure functions. ``encode`` writes only the
fields that differ from their defaults, so a cleared filter panel maps to
an empty query string. ``decode`` never raises: every missing, sentinel
(``"undefined"``/``"null"``), blank or unparsable value falls back to the
field default, because shared and hand-edited links must always render.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from urllib.parse import parse_qsl, quote, unquote, urlencode

from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError, field_validator

from catalogsync.constants import (
    DEFAULT_MAX_PRICE,
    DEFAULT_MIN_PRICE,
    KEY_ATTRIBUTES,
    KEY_BRANDS,
    KEY_CATEGORIES,
    KEY_DISCOUNTS,
    KEY_IN_STOCK,
    KEY_IS_BESTSELLER,
    KEY_IS_FEATURED,
    KEY_MAX_PRICE,
    KEY_MIN_PRICE,
    KEY_ORGANIC,
    KEY_RATING,
    KEY_SEARCH_TERM,
    LEGACY_KEY_SEARCH,
    LIST_SEPARATOR,
    SENTINEL_VALUES,
)
from catalogsync.models import AttributeFilters, FilterState, Organic

logger = logging.getLogger(__name__)

QueryPairs = list[tuple[str, str]]
QueryInput = str | Mapping[str, str] | Sequence[tuple[str, str]]


class AttributeEntry(BaseModel):
    """One ``name -> values`` entry of the ``attributes`` JSON object.

    A bare string value is accepted as a one-element list; anything else
    that is not a list of strings fails validation and the entry is dropped.
    """

    name: StrictStr
    values: list[StrictStr]

    model_config = ConfigDict(extra="forbid")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("attribute name is blank")
        return v

    @field_validator("values", mode="before")
    @classmethod
    def wrap_single_value(cls, v: object) -> object:
        if isinstance(v, str):
            return [v]
        return v


# ----------------------------------------------------------------------
# Query string helpers
# ----------------------------------------------------------------------


def format_query(pairs: Sequence[tuple[str, str]]) -> str:
    """Form-encode *pairs* the way a browser's URLSearchParams does."""
    return urlencode(list(pairs))


def parse_query(query: QueryInput | None) -> dict[str, str]:
    """Parse a query into a ``key -> first value`` dict. Never raises.

    Accepts a raw string (with or without a leading ``?``), a mapping, or
    a sequence of ``(key, value)`` pairs. Blank values are kept so that
    ``decode`` can treat them as sentinels.
    """
    if query is None:
        return {}
    if isinstance(query, str):
        try:
            pairs = parse_qsl(query.lstrip("?"), keep_blank_values=True)
        except ValueError as exc:
            logger.debug("unparsable query %r: %s", query, exc)
            return {}
    elif isinstance(query, Mapping):
        pairs = list(query.items())
    else:
        pairs = []
        for item in query:
            if isinstance(item, (tuple, list)) and len(item) == 2:
                pairs.append((item[0], item[1]))

    params: dict[str, str] = {}
    for key, value in pairs:
        if isinstance(value, (list, tuple)):
            value = value[0] if value else ""
        if not isinstance(key, str) or not isinstance(value, str):
            continue
        params.setdefault(key, value)
    return params


# ----------------------------------------------------------------------
# Encoding
# ----------------------------------------------------------------------


def _join(values: frozenset[str]) -> str | None:
    members = sorted(v for v in values if v)
    return LIST_SEPARATOR.join(members) if members else None


def encode(state: FilterState) -> QueryPairs:
    """Serialize *state* into ordered query pairs, omitting every default."""
    pairs: QueryPairs = []

    if state.has_price_filter:
        low, high = state.price_range
        pairs.append((KEY_MIN_PRICE, str(low)))
        pairs.append((KEY_MAX_PRICE, str(high)))

    for key, values in (
        (KEY_CATEGORIES, state.categories),
        (KEY_BRANDS, state.brands),
        (KEY_DISCOUNTS, state.selected_discounts),
    ):
        joined = _join(values)
        if joined is not None:
            pairs.append((key, joined))

    if state.attributes:
        payload = json.dumps(state.attributes.to_dict(), separators=(",", ":"), ensure_ascii=False)
        # Escaped once here and once more by format_query, as the storefront always did
        pairs.append((KEY_ATTRIBUTES, quote(payload, safe="")))

    if state.rating is not None and state.rating >= 0:
        pairs.append((KEY_RATING, str(state.rating)))

    if not state.in_stock:
        pairs.append((KEY_IN_STOCK, "false"))
    if state.is_bestseller:
        pairs.append((KEY_IS_BESTSELLER, "true"))
    if state.is_featured:
        pairs.append((KEY_IS_FEATURED, "true"))

    if state.search_term:
        pairs.append((KEY_SEARCH_TERM, state.search_term.strip()))

    if state.organic is not Organic.UNSET:
        pairs.append((KEY_ORGANIC, state.organic.value))

    return pairs


def encode_query(state: FilterState) -> str:
    """Serialize *state* straight to a query string (no leading ``?``)."""
    return format_query(encode(state))


# ----------------------------------------------------------------------
# Decoding
# ----------------------------------------------------------------------


def _usable(value: str | None) -> str | None:
    """Return *value* unless it is missing, blank or a JS sentinel."""
    if value is None:
        return None
    if value.strip() == "" or value.strip() in SENTINEL_VALUES:
        return None
    return value


def _parse_int(value: str | None) -> int | None:
    """Strict base-10 integer parse; ``None`` on any failure."""
    value = _usable(value)
    if value is None:
        return None
    text = value.strip()
    digits = text[1:] if text[:1] in "+-" else text
    if not digits.isascii() or not digits.isdigit():
        return None
    try:
        return int(text)
    except ValueError:
        # int() refuses very long digit strings
        return None


def _parse_list(value: str | None) -> frozenset[str]:
    value = _usable(value)
    if value is None:
        return frozenset()
    return frozenset(item for item in value.split(LIST_SEPARATOR) if _usable(item) is not None)


def _parse_price(params: Mapping[str, str]) -> tuple[int, int]:
    default = (DEFAULT_MIN_PRICE, DEFAULT_MAX_PRICE)
    low = _parse_int(params.get(KEY_MIN_PRICE))
    high = _parse_int(params.get(KEY_MAX_PRICE))
    if low is None or high is None:
        return default
    low, high = max(low, 0), max(high, 0)
    if low > high:
        logger.debug("inverted price range %s > %s, using default", low, high)
        return default
    return (low, high)


def _parse_attributes(value: str | None) -> AttributeFilters:
    value = _usable(value)
    if value is None:
        return AttributeFilters()
    try:
        parsed = json.loads(unquote(value))
    except (ValueError, RecursionError) as exc:
        logger.debug("attributes are not valid JSON: %s", exc)
        return AttributeFilters()
    if not isinstance(parsed, dict):
        logger.debug("attributes JSON is not an object: %r", parsed)
        return AttributeFilters()

    entries: dict[str, list[str]] = {}
    for name, values in parsed.items():
        try:
            entry = AttributeEntry.model_validate({"name": name, "values": values})
        except ValidationError:
            logger.debug("dropping invalid attribute entry %r=%r", name, values)
            continue
        entries[entry.name] = [v for v in entry.values if _usable(v) is not None]
    return AttributeFilters(entries)


def _parse_organic(value: str | None) -> Organic:
    value = _usable(value)
    if value == "true":
        return Organic.ONLY
    if value == "false":
        return Organic.EXCLUDED
    return Organic.UNSET


def _parse_search_term(params: Mapping[str, str]) -> str | None:
    for key in (KEY_SEARCH_TERM, LEGACY_KEY_SEARCH):
        value = _usable(params.get(key))
        if value is not None:
            return value.strip()
    return None


def decode(query: QueryInput | None) -> FilterState:
    """Deserialize *query* into a fully-populated FilterState.

    Unknown keys are ignored and every invalid value is replaced by its
    default. Never raises.
    """
    params = parse_query(query)

    rating = _parse_int(params.get(KEY_RATING))
    if rating is not None and rating < 0:
        rating = None

    return FilterState(
        price_range=_parse_price(params),
        categories=_parse_list(params.get(KEY_CATEGORIES)),
        brands=_parse_list(params.get(KEY_BRANDS)),
        attributes=_parse_attributes(params.get(KEY_ATTRIBUTES)),
        selected_discounts=_parse_list(params.get(KEY_DISCOUNTS)),
        rating=rating,
        in_stock=params.get(KEY_IN_STOCK) != "false",
        is_bestseller=params.get(KEY_IS_BESTSELLER) == "true",
        is_featured=params.get(KEY_IS_FEATURED) == "true",
        search_term=_parse_search_term(params),
        organic=_parse_organic(params.get(KEY_ORGANIC)),
    )


def canonicalize(query: QueryInput | None) -> str:
    """Rewrite *query* in canonical form (defaults dropped, values sorted)."""
    return encode_query(decode(query))
