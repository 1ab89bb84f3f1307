"""Filter vocabulary shared by the parser, the serializer and the chip renderer.

Every filter key the query language understands has exactly one entry in
``FIELDS``. The ``kind`` of an entry decides how a value is parsed, how it is
written to query params and how it is shown as a chip, so adding a key means
adding one row here and nothing else.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class SearchContext(str, Enum):
    MEDIA = "media"
    CHARACTER = "character"
    LIBRARY = "library"


class FilterKind(str, Enum):
    TEXT_LIST = "text_list"   # list of strings, OR-ed; exclusions AND-ed
    NUMBER = "number"         # exact int or a one-sided range
    RANGE = "range"           # one-sided range only


@dataclass(frozen=True)
class FilterField:
    key: str
    kind: FilterKind
    excludable: bool = False
    # Numeric fields only
    max_digits: Optional[int] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None

    @property
    def exclude_key(self) -> str:
        return f"exclude_{self.key}"

    def accepts(self, number: int) -> bool:
        if self.min_value is not None and number < self.min_value:
            return False
        if self.max_value is not None and number > self.max_value:
            return False
        return True


# Order matters: chips are rendered in this order.
FIELDS: Tuple[FilterField, ...] = (
    FilterField("title", FilterKind.TEXT_LIST, excludable=True),
    FilterField("name", FilterKind.TEXT_LIST, excludable=True),
    FilterField("year", FilterKind.NUMBER, excludable=True),
    FilterField("type", FilterKind.TEXT_LIST, excludable=True),
    FilterField("status", FilterKind.TEXT_LIST, excludable=True),
    FilterField("tag", FilterKind.TEXT_LIST, excludable=True),
    FilterField("score", FilterKind.NUMBER, max_digits=2, min_value=1, max_value=10),
    FilterField("media", FilterKind.TEXT_LIST, excludable=True),
    FilterField("appearances", FilterKind.RANGE),
    FilterField("user_status", FilterKind.TEXT_LIST, excludable=True),
    FilterField("user_score", FilterKind.NUMBER, max_digits=2, min_value=1, max_value=10),
)

FIELDS_BY_KEY: Dict[str, FilterField] = {f.key: f for f in FIELDS}

# Where plain (non key:value) text goes, per context
PLAIN_TEXT_FIELD: Dict[SearchContext, str] = {
    SearchContext.MEDIA: "title",
    SearchContext.LIBRARY: "title",
    SearchContext.CHARACTER: "name",
}

# Query params that carry paging/sorting, not filters
NON_FILTER_PARAMS = frozenset({"page", "sort", "order"})


def get_field(key: str) -> Optional[FilterField]:
    """Look up a filter key, case-insensitively."""
    return FIELDS_BY_KEY.get(key.lower())


def coerce_context(context) -> Optional[SearchContext]:
    """Accept a SearchContext or its string value; unknown contexts map to None."""
    if isinstance(context, SearchContext):
        return context
    try:
        return SearchContext(context)
    except ValueError:
        return None
