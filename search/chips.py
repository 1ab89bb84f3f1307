"""Filter chips: one removable display item per active filter value."""

import re
from typing import Callable, Dict, List, Optional, Tuple, Union

from search.fields import FIELDS, FilterKind, SearchContext, get_field
from search.models import Chip, SearchFilters, SearchToken
from search.parser import tokenize_search_query

_WHITESPACE = re.compile(r"\s+")


def _list_chips(key: str, label: str, values: Optional[List[str]]) -> List[Chip]:
    return [Chip(key=key, label=label, value=v) for v in values or []]


def _number_chips(key: str, label: str, value) -> List[Chip]:
    if value is None:
        return []
    return [Chip(key=key, label=label, value=str(value))]


_RENDERERS: Dict[FilterKind, Callable[[str, str, object], List[Chip]]] = {
    FilterKind.TEXT_LIST: _list_chips,
    FilterKind.NUMBER: _number_chips,
    FilterKind.RANGE: _number_chips,
}


def filters_to_chips(filters: SearchFilters) -> List[Chip]:
    """Render filters as chips in fixed field order, inclusions before exclusions."""
    chips: List[Chip] = []
    for field in FIELDS:
        render = _RENDERERS[field.kind]
        chips.extend(render(field.key, field.key, getattr(filters, field.key)))
        if field.excludable:
            chips.extend(render(field.exclude_key, f"-{field.key}", getattr(filters, field.exclude_key)))
    return chips


def _spans_for_chip(chip: Chip, tokens: List[SearchToken]) -> Optional[List[Tuple[int, int]]]:
    field = get_field(chip.base_key)
    if field is None:
        return None

    matching = [t for t in tokens if t.key == field.key and t.negated == chip.negated]

    if field.kind is FilterKind.TEXT_LIST:
        for token in matching:
            if token.value == chip.value:
                return [(token.start, token.end)]
        return None

    # Numeric slots keep only the last occurrence; drop them all so the
    # filter really goes away.
    if matching:
        return [(t.start, t.end) for t in matching]
    return None


def remove_chip(
    query: str,
    chip: Chip,
    context: Union[SearchContext, str, None] = SearchContext.MEDIA,
) -> Tuple[str, SearchFilters]:
    """Remove one chip from the query text and re-parse.

    Returns the edited query and its filters. The query text stays the single
    source of truth; the filters are never edited directly.
    """
    parsed = tokenize_search_query(query, context)
    spans = _spans_for_chip(chip, parsed.tokens)

    if spans:
        pieces = []
        cursor = 0
        for start, end in sorted(spans):
            pieces.append(query[cursor:start])
            pieces.append(" ")
            cursor = end
        pieces.append(query[cursor:])
        new_query = "".join(pieces)
    elif (
        not chip.negated
        and chip.base_key in ("title", "name")
        and parsed.plain_text
        and chip.value == parsed.plain_text
    ):
        # Plain-text contribution: keep only the claimed tokens
        new_query = " ".join(query[t.start:t.end] for t in parsed.tokens)
    else:
        new_query = query

    new_query = _WHITESPACE.sub(" ", new_query).strip()
    return new_query, tokenize_search_query(new_query, context).filters


def handled_kinds() -> frozenset:
    """Filter kinds the chip renderer knows how to display."""
    return frozenset(_RENDERERS)
