"""Build CQL query strings from search text and filters."""

import calendar
import re
from datetime import date, timedelta

from loguru import logger

from confluence_search.errors import ValidationError
from confluence_search.models.result import CONTENT_TYPES
from confluence_search.models.state import FilterState

_DATE_RANGE_RE = re.compile(r"^(\d+)([dwmy])$")

# Characters accepted in raw search text besides letters, digits and whitespace.
_ALLOWED_PUNCTUATION = frozenset("-_.@\"'()/:,&[]{}")
# Characters kept after sanitising.
_KEPT_PUNCTUATION = frozenset("-_.@\"'")


def escape_cql(text: str) -> str:
    """Escape backslash, then double quote, for use inside a CQL string literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _subtract_months(day: date, months: int) -> date:
    total = day.year * 12 + (day.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def date_lower_bound(date_range: str, *, today: date | None = None) -> date | None:
    """Resolve a relative range such as ``1w`` or ``3m`` to a calendar date.

    Returns None for ``any`` and for values that do not parse.
    """
    match = _DATE_RANGE_RE.match(date_range.strip().lower())
    if not match:
        return None
    amount, unit = int(match.group(1)), match.group(2)
    today = today or date.today()
    try:
        if unit == "d":
            return today - timedelta(days=amount)
        if unit == "w":
            return today - timedelta(weeks=amount)
        if unit == "m":
            return _subtract_months(today, amount)
        return _subtract_months(today, amount * 12)
    except (OverflowError, ValueError):
        return None


def filter_clauses(filters: FilterState, *, today: date | None = None) -> list[str]:
    """CQL clauses for the filters that hold a usable value, in query order."""
    parts: list[str] = []
    if filters.space_key:
        parts.append(f'space="{escape_cql(filters.space_key)}"')
    if filters.contributor_key:
        parts.append(f'creator="{escape_cql(filters.contributor_key)}"')

    from_date = date_lower_bound(filters.date_range, today=today) if filters.date_range else None
    if from_date:
        parts.append(f'lastModified >= "{from_date.isoformat()}"')

    if filters.type_filter in CONTENT_TYPES:
        parts.append(f'type="{filters.type_filter}"')
    return parts


def build_cql(search_text: str, filters: FilterState, *, today: date | None = None) -> str:
    """Convert search text plus remote-narrowing filters into a CQL query.

    The free-text clause is always present; every other clause appears only
    when its filter holds a usable value.
    """
    escaped = escape_cql(search_text)
    parts = [f'(text ~ "{escaped}" OR title ~ "{escaped}")']
    parts.extend(filter_clauses(filters, today=today))
    cql = " AND ".join(parts)
    logger.debug("Built CQL: {}", cql)
    return cql


def validate_search_text(raw: str) -> str:
    """Check and sanitise user search text.

    Raises:
        ValidationError: If the text is empty or contains disallowed characters.
    """
    text = raw.strip()
    if not text:
        msg = "Please enter a search query."
        raise ValidationError(msg)
    bad = sorted({ch for ch in text if not (ch.isalnum() or ch.isspace() or ch in _ALLOWED_PUNCTUATION)})
    if bad:
        msg = f"Invalid search query, unsupported characters: {''.join(bad)!r}"
        raise ValidationError(msg)
    cleaned = "".join(ch for ch in text if ch.isalnum() or ch.isspace() or ch in _KEPT_PUNCTUATION)
    if not cleaned.strip():
        msg = "Please enter a search query."
        raise ValidationError(msg)
    return cleaned.strip()
