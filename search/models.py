"""Data classes produced and consumed by the search query language."""

from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Any, Dict, List, Optional, Union

from search.fields import SearchContext


@dataclass(frozen=True)
class Range:
    """A one-sided, exclusive numeric bound: ``>N`` or ``<N``."""

    gt: Optional[int] = None
    lt: Optional[int] = None

    def __str__(self) -> str:
        if self.gt is not None:
            return f">{self.gt}"
        return f"<{self.lt}"


NumberFilter = Union[int, Range]


@dataclass
class SearchFilters:
    """Structured form of a search query.

    List slots are ``None`` until their first value is added, so an empty
    list never appears. Numeric slots hold an exact ``int`` or a ``Range``.
    """

    title: Optional[List[str]] = None
    exclude_title: Optional[List[str]] = None
    name: Optional[List[str]] = None
    exclude_name: Optional[List[str]] = None
    year: Optional[NumberFilter] = None
    exclude_year: Optional[NumberFilter] = None
    type: Optional[List[str]] = None
    exclude_type: Optional[List[str]] = None
    status: Optional[List[str]] = None
    exclude_status: Optional[List[str]] = None
    tag: Optional[List[str]] = None
    exclude_tag: Optional[List[str]] = None
    score: Optional[NumberFilter] = None
    media: Optional[List[str]] = None
    exclude_media: Optional[List[str]] = None
    appearances: Optional[Range] = None
    user_status: Optional[List[str]] = None
    exclude_user_status: Optional[List[str]] = None
    user_score: Optional[NumberFilter] = None

    def add(self, slot: str, value: str) -> None:
        values = getattr(self, slot)
        if values is None:
            values = []
            setattr(self, slot, values)
        values.append(value)

    def to_dict(self) -> Dict[str, Any]:
        """Populated slots only."""
        return {
            f.name: getattr(self, f.name)
            for f in dataclass_fields(self)
            if getattr(self, f.name) is not None
        }

    def is_empty(self) -> bool:
        return not self.to_dict()


@dataclass(frozen=True)
class SearchToken:
    """One claimed ``[-]key:value`` expression and where it sits in the query."""

    key: str
    value: str
    negated: bool
    start: int
    end: int
    quoted: bool = False

    @property
    def slot(self) -> str:
        return f"exclude_{self.key}" if self.negated else self.key


@dataclass
class ParsedQuery:
    query: str
    context: Optional[SearchContext]
    filters: SearchFilters
    tokens: List[SearchToken] = field(default_factory=list)
    plain_text: str = ""


@dataclass(frozen=True)
class Chip:
    """Display form of one active filter value."""

    key: str
    label: str
    value: str

    @property
    def negated(self) -> bool:
        return self.key.startswith("exclude_")

    @property
    def base_key(self) -> str:
        key = self.key[len("exclude_"):] if self.negated else self.key
        return key.lower()
