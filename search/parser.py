"""Parse free-text search input into structured filters.

Syntax::

    Naruto -status:completed year:>2010 tag:"Slice of Life"

- ``key:value`` and ``key:"value with spaces"`` set a filter
- a leading ``-`` excludes the value instead
- numeric keys take ``N``, ``>N`` or ``<N``
- everything else is plain text and searches titles (or names)

Parsing never fails: expressions with an unknown key stay in the plain text,
and numeric expressions with a malformed value are dropped.
"""

import logging
import re
from typing import Callable, Dict, Optional, Union

from search.fields import (
    PLAIN_TEXT_FIELD,
    FilterField,
    FilterKind,
    SearchContext,
    coerce_context,
    get_field,
)
from search.models import NumberFilter, ParsedQuery, Range, SearchFilters, SearchToken

logger = logging.getLogger(__name__)

# One pattern for both forms. The quoted alternative is tried first, so at any
# offset a quoted value wins and matches can never overlap. Keys are ASCII word
# characters only, so "ñtitle:x" still claims "title:x".
TOKEN_PATTERN = re.compile(r'(-?)([A-Za-z0-9_]+):(?:"([^"]+)"|(\S+))')

_NUMBER_PATTERNS: Dict[Optional[int], "re.Pattern[str]"] = {}


def _number_pattern(max_digits: Optional[int]) -> "re.Pattern[str]":
    pattern = _NUMBER_PATTERNS.get(max_digits)
    if pattern is None:
        digits = f"[0-9]{{1,{max_digits}}}" if max_digits else "[0-9]+"
        pattern = re.compile(f"(>|<)?({digits})")
        _NUMBER_PATTERNS[max_digits] = pattern
    return pattern


def parse_number(field: FilterField, value: str) -> Optional[NumberFilter]:
    """Parse ``N`` / ``>N`` / ``<N`` for a numeric field, or return None."""
    match = _number_pattern(field.max_digits).fullmatch(value)
    if not match:
        return None
    operator, digits = match.groups()
    number = int(digits)
    if not field.accepts(number):
        return None
    if operator == ">":
        return Range(gt=number)
    if operator == "<":
        return Range(lt=number)
    if field.kind is FilterKind.RANGE:
        # appearances has no exact form
        return None
    return number


def _apply_text(filters: SearchFilters, field: FilterField, token: SearchToken) -> None:
    if token.negated and not field.excludable:
        return
    filters.add(token.slot, token.value)


def _apply_number(filters: SearchFilters, field: FilterField, token: SearchToken) -> None:
    if token.negated and not field.excludable:
        return
    parsed = parse_number(field, token.value)
    if parsed is not None:
        # Last occurrence wins
        setattr(filters, token.slot, parsed)


_APPLIERS: Dict[FilterKind, Callable[[SearchFilters, FilterField, SearchToken], None]] = {
    FilterKind.TEXT_LIST: _apply_text,
    FilterKind.NUMBER: _apply_number,
    FilterKind.RANGE: _apply_number,
}


def tokenize_search_query(
    query: str,
    context: Union[SearchContext, str, None] = SearchContext.MEDIA,
) -> ParsedQuery:
    """Parse ``query`` and keep the positioned tokens alongside the filters."""
    ctx = coerce_context(context)
    filters = SearchFilters()
    parsed = ParsedQuery(query=query, context=ctx, filters=filters)

    if not query or not query.strip():
        return parsed

    pieces = []
    cursor = 0
    for match in TOKEN_PATTERN.finditer(query):
        negation, key, quoted_value, bare_value = match.groups()
        field = get_field(key)
        if field is None:
            # Unknown key: leave it for the plain-text fallback
            continue

        token = SearchToken(
            key=field.key,
            value=quoted_value if quoted_value is not None else bare_value,
            negated=bool(negation),
            start=match.start(),
            end=match.end(),
            quoted=quoted_value is not None,
        )
        parsed.tokens.append(token)
        _APPLIERS[field.kind](filters, field, token)

        pieces.append(query[cursor:token.start])
        pieces.append(" ")
        cursor = token.end

    pieces.append(query[cursor:])
    plain_text = "".join(pieces).strip()
    parsed.plain_text = plain_text

    if plain_text and ctx is not None:
        filters.add(PLAIN_TEXT_FIELD[ctx], plain_text)

    logger.debug(f"Parsed search query {query!r}: {filters.to_dict()}")
    return parsed


def parse_search_query(
    query: str,
    context: Union[SearchContext, str, None] = SearchContext.MEDIA,
) -> SearchFilters:
    """Parse a search string into ``SearchFilters``."""
    return tokenize_search_query(query, context).filters


def handled_kinds() -> frozenset:
    """Filter kinds the parser knows how to apply."""
    return frozenset(_APPLIERS)
