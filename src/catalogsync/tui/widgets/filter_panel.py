"""Filter panel widget for narrowing the product listing.

Provides selection lists for categories, brands and discount buckets,
dropdowns for minimum rating and organic, price inputs and flag
checkboxes. User edits post FiltersEdited; the App pushes store changes
back with :meth:`FilterPanel.show_filters`.
"""

from __future__ import annotations

import logging

from textual.containers import VerticalScroll
from textual.widgets import Checkbox, Input, Select, SelectionList, Static

from catalogsync.constants import DEFAULT_MAX_PRICE, DEFAULT_MIN_PRICE
from catalogsync.models import FilterState, Organic
from catalogsync.tui.messages import FiltersEdited

logger = logging.getLogger(__name__)

CATEGORIES: tuple[str, ...] = ("vegetables", "fruits", "dairy", "bakery", "beverages")
BRANDS: tuple[str, ...] = ("FarmCo", "GreenLeaf", "DairyBest", "SunBake")
DISCOUNT_BUCKETS: tuple[str, ...] = ("0-10", "10-50", "50-100")
RATINGS: tuple[int, ...] = (1, 2, 3, 4, 5)


def _merge_selection(selected: list[str], known: tuple[str, ...], current: frozenset[str]) -> frozenset[str]:
    """Widget selection plus any values from the URL the panel cannot display."""
    return frozenset(selected) | (current - set(known))


class FilterPanel(VerticalScroll):
    """Sidebar of filter controls.

    Values the panel has no control for (an unknown category from a shared
    link, attribute filters, ratings above the list) are carried over from
    the current state untouched rather than being cleared by an edit.
    """

    DEFAULT_CSS = """
    FilterPanel {
        width: 40;
        padding: 0 1;
        border-right: solid $primary;
        background: $surface;
    }

    FilterPanel SelectionList {
        height: auto;
        max-height: 7;
    }

    FilterPanel .filter-header {
        text-style: bold;
        margin-top: 1;
    }
    """

    def __init__(self) -> None:
        super().__init__(id="filter-panel")

    def compose(self):
        """Yield filter headers and controls."""
        yield Static("Categories", classes="filter-header")
        yield SelectionList[str](*((c.title(), c) for c in CATEGORIES), id="filter-categories")
        yield Static("Brands", classes="filter-header")
        yield SelectionList[str](*((b, b) for b in BRANDS), id="filter-brands")
        yield Static("Discounts (%)", classes="filter-header")
        yield SelectionList[str](*((d, d) for d in DISCOUNT_BUCKETS), id="filter-discounts")
        yield Static("Price", classes="filter-header")
        yield Input(placeholder=f"Min ({DEFAULT_MIN_PRICE})", type="integer", id="price-min")
        yield Input(placeholder=f"Max ({DEFAULT_MAX_PRICE})", type="integer", id="price-max")
        yield Select(
            [(f"{n}+ stars", n) for n in RATINGS],
            allow_blank=True,
            prompt="Any rating",
            id="filter-rating",
        )
        yield Select(
            [("Organic only", Organic.ONLY.value), ("Non-organic only", Organic.EXCLUDED.value)],
            allow_blank=True,
            prompt="Organic: any",
            id="filter-organic",
        )
        yield Checkbox("In stock only", value=True, id="filter-in-stock")
        yield Checkbox("Bestsellers", id="filter-bestseller")
        yield Checkbox("Featured", id="filter-featured")

    # ------------------------------------------------------------------
    # Store -> widgets
    # ------------------------------------------------------------------

    def show_filters(self, state: FilterState) -> None:
        """Set every control to *state* without posting FiltersEdited."""
        with self.prevent(
            SelectionList.SelectedChanged, Select.Changed, Checkbox.Changed, Input.Changed
        ):
            for selector, known, values in (
                ("#filter-categories", CATEGORIES, state.categories),
                ("#filter-brands", BRANDS, state.brands),
                ("#filter-discounts", DISCOUNT_BUCKETS, state.selected_discounts),
            ):
                selection = self.query_one(selector, SelectionList)
                selection.deselect_all()
                for value in known:
                    if value in values:
                        selection.select(value)

            low, high = state.price_range
            self.query_one("#price-min", Input).value = str(low) if state.has_price_filter else ""
            self.query_one("#price-max", Input).value = str(high) if state.has_price_filter else ""

            rating = self.query_one("#filter-rating", Select)
            rating.value = state.rating if state.rating in RATINGS else Select.NULL
            organic = self.query_one("#filter-organic", Select)
            organic.value = state.organic.value if state.organic is not Organic.UNSET else Select.NULL

            self.query_one("#filter-in-stock", Checkbox).value = state.in_stock
            self.query_one("#filter-bestseller", Checkbox).value = state.is_bestseller
            self.query_one("#filter-featured", Checkbox).value = state.is_featured

    # ------------------------------------------------------------------
    # Widgets -> FiltersEdited
    # ------------------------------------------------------------------

    def collect(self, base: FilterState) -> FilterState:
        """Build a FilterState from the controls, on top of *base*."""
        rating_val = self.query_one("#filter-rating", Select).value
        if rating_val is not Select.NULL:
            rating = rating_val
        elif base.rating is not None and base.rating not in RATINGS:
            rating = base.rating
        else:
            rating = None
        organic_val = self.query_one("#filter-organic", Select).value

        return base.replace(
            categories=_merge_selection(
                self.query_one("#filter-categories", SelectionList).selected, CATEGORIES, base.categories
            ),
            brands=_merge_selection(
                self.query_one("#filter-brands", SelectionList).selected, BRANDS, base.brands
            ),
            selected_discounts=_merge_selection(
                self.query_one("#filter-discounts", SelectionList).selected,
                DISCOUNT_BUCKETS,
                base.selected_discounts,
            ),
            rating=rating,
            organic=Organic.UNSET if organic_val is Select.NULL else Organic(organic_val),
            in_stock=self.query_one("#filter-in-stock", Checkbox).value,
            is_bestseller=self.query_one("#filter-bestseller", Checkbox).value,
            is_featured=self.query_one("#filter-featured", Checkbox).value,
        )

    def _post_if_changed(self, source: str) -> None:
        current = self.app.filter_store.state  # type: ignore[attr-defined]
        edited = self.collect(current)
        if edited == current:
            return
        logger.info(f"filter edited widget={source!r} filters={edited.summary()!r}")
        self.post_message(FiltersEdited(filters=edited))

    def on_selection_list_selected_changed(self, event: SelectionList.SelectedChanged) -> None:
        event.stop()
        self._post_if_changed(event.selection_list.id or "selection")

    def on_select_changed(self, event: Select.Changed) -> None:
        event.stop()
        self._post_if_changed(event.select.id or "select")

    def on_checkbox_changed(self, event: Checkbox.Changed) -> None:
        event.stop()
        self._post_if_changed(event.checkbox.id or "checkbox")

    def on_input_changed(self, event: Input.Changed) -> None:
        # Price is applied on Enter only
        event.stop()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Apply the price range when Enter is pressed in either price field."""
        event.stop()
        low_text = self.query_one("#price-min", Input).value.strip()
        high_text = self.query_one("#price-max", Input).value.strip()
        try:
            low = int(low_text) if low_text else DEFAULT_MIN_PRICE
            high = int(high_text) if high_text else DEFAULT_MAX_PRICE
        except ValueError:
            self.notify("Price must be a whole number", severity="warning")
            return
        if not DEFAULT_MIN_PRICE <= low <= high <= DEFAULT_MAX_PRICE:
            self.notify(
                f"Price range must satisfy {DEFAULT_MIN_PRICE} <= min <= max <= {DEFAULT_MAX_PRICE}",
                severity="warning",
            )
            return

        current = self.app.filter_store.state  # type: ignore[attr-defined]
        edited = self.collect(current).replace(price_range=(low, high))
        if edited != current:
            logger.info(f"price edited range=({low}, {high})")
            self.post_message(FiltersEdited(filters=edited))

