"""Structured search query language: parse, serialize, chips."""

from search.chips import filters_to_chips, remove_chip
from search.fields import FIELDS, FilterField, FilterKind, SearchContext
from search.models import Chip, ParsedQuery, Range, SearchFilters, SearchToken
from search.parser import parse_search_query, tokenize_search_query
from search.serializer import filters_to_query_params, query_params_to_search_query

__all__ = [
    "Chip",
    "FIELDS",
    "FilterField",
    "FilterKind",
    "ParsedQuery",
    "Range",
    "SearchContext",
    "SearchFilters",
    "SearchToken",
    "filters_to_chips",
    "filters_to_query_params",
    "parse_search_query",
    "query_params_to_search_query",
    "remove_chip",
    "tokenize_search_query",
]
