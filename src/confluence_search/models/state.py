"""Filter and sort state for the display list."""

from dataclasses import dataclass, replace
from enum import StrEnum


@dataclass(frozen=True)
class FilterState:
    """Active filters.

    ``text`` narrows the display only. The other fields narrow the remote
    query, so changing them requires a fetch reset.
    """

    text: str = ""
    space_key: str = ""
    contributor_key: str = ""
    date_range: str = "any"
    type_filter: str = ""

    def remote_key(self) -> tuple[str, str, str, str]:
        return (self.space_key, self.contributor_key, self.date_range, self.type_filter)

    def with_changes(self, **changes: str) -> "FilterState":
        return replace(self, **changes)


class SortColumn(StrEnum):
    TYPE = "type"
    NAME = "name"
    SPACE = "space"
    CONTRIBUTOR = "contributor"
    CREATED = "created"
    MODIFIED = "modified"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"
    NONE = "none"


_NEXT_ORDER = {SortOrder.ASC: SortOrder.DESC, SortOrder.DESC: SortOrder.NONE, SortOrder.NONE: SortOrder.ASC}


@dataclass(frozen=True)
class SortState:
    """Current sort column and order. ``order == NONE`` keeps fetch order."""

    column: SortColumn | None = None
    order: SortOrder = SortOrder.NONE

    @property
    def active(self) -> bool:
        return self.column is not None and self.order is not SortOrder.NONE

    def toggled(self, column: SortColumn) -> "SortState":
        """Select a column: asc -> desc -> none on repeats, asc for a new column."""
        if column == self.column:
            return SortState(column=column, order=_NEXT_ORDER[self.order])
        return SortState(column=column, order=SortOrder.ASC)
