"""Derive the display list from accumulated results, filters and sort state."""

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from confluence_search.models.result import Result
from confluence_search.models.state import FilterState, SortColumn, SortOrder, SortState

# Missing dates sort as the earliest possible instant.
_EARLIEST = datetime.min.replace(tzinfo=UTC)


def _instant(value: datetime | None) -> datetime:
    if value is None:
        return _EARLIEST
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


_SORT_KEYS: dict[SortColumn, Callable[[Result], Any]] = {
    SortColumn.TYPE: lambda r: r.type_label.casefold(),
    SortColumn.NAME: lambda r: r.title.casefold(),
    SortColumn.SPACE: lambda r: r.space.name.casefold() if r.space else "",
    SortColumn.CONTRIBUTOR: lambda r: r.creator.display_name.casefold() if r.creator else "",
    SortColumn.CREATED: lambda r: _instant(r.created_at),
    SortColumn.MODIFIED: lambda r: _instant(r.modified_at),
}


def matches_filters(result: Result, filters: FilterState) -> bool:
    """Client-side filter check.

    Text matches the title only. Space and contributor keys confirm what the
    server already narrowed and pass through when unset.
    """
    text = filters.text.strip().casefold()
    if text and text not in result.title.casefold():
        return False
    if filters.space_key and (result.space is None or result.space.key != filters.space_key):
        return False
    if filters.contributor_key and (
        result.creator is None or result.creator.key != filters.contributor_key
    ):
        return False
    return True


def sort_results(results: Iterable[Result], sort: SortState) -> list[Result]:
    """Stable sort; an inactive sort keeps input order."""
    items = list(results)
    if not sort.active or sort.column is None:
        return items
    key = _SORT_KEYS[sort.column]
    # sorted() with reverse=True is still stable for equal keys.
    return sorted(items, key=key, reverse=sort.order is SortOrder.DESC)


def derive_display_list(
    results: Iterable[Result],
    filters: FilterState,
    sort: SortState,
) -> list[Result]:
    """Filter then sort. Pure and idempotent."""
    return sort_results((r for r in results if matches_filters(r, filters)), sort)
