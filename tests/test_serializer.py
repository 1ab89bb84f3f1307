"""Tests for query-param serialization in both directions."""

import pytest

from search import (
    FIELDS,
    Range,
    SearchContext,
    SearchFilters,
    filters_to_query_params,
    parse_search_query,
    query_params_to_search_query,
)
from search.serializer import wire_keys
from db.filters import accepted_params
from db.media import MEDIA_FILTERS
from db.characters import CHARACTER_FILTERS
from db.library import LIBRARY_FILTERS


def test_empty_filters_emit_nothing():
    assert filters_to_query_params(SearchFilters()) == {}


def test_list_values_are_comma_joined():
    assert filters_to_query_params(SearchFilters(type=["movie", "tv"])) == {"type": "movie,tv"}


def test_exclusions_use_snake_case_prefix():
    params = filters_to_query_params(SearchFilters(exclude_title=["Foo"], exclude_user_status=["dropped"]))
    assert params == {"exclude_title": "Foo", "exclude_user_status": "dropped"}


@pytest.mark.parametrize("value,expected", [
    (2006, {"year": "2006"}),
    (Range(gt=2010), {"year_gt": "2010"}),
    (Range(lt=1990), {"year_lt": "1990"}),
])
def test_number_forms(value, expected):
    assert filters_to_query_params(SearchFilters(year=value)) == expected


def test_excluded_year_forms():
    params = filters_to_query_params(SearchFilters(exclude_year=Range(gt=2000)))
    assert params == {"exclude_year_gt": "2000"}


def test_appearances_is_emitted():
    params = filters_to_query_params(SearchFilters(appearances=Range(gt=3)))
    assert params == {"appearances_gt": "3"}


def test_sort_and_order_pass_through():
    params = filters_to_query_params(SearchFilters(tag=["action"]), sort="title", order="asc")
    assert params == {"tag": "action", "sort": "title", "order": "asc"}


def test_end_to_end_params():
    filters = parse_search_query("Naruto -status:completed year:>2010", SearchContext.MEDIA)
    assert filters_to_query_params(filters) == {
        "title": "Naruto",
        "exclude_status": "completed",
        "year_gt": "2010",
    }


class TestReverseSerializer:
    def test_skips_paging_and_sorting(self):
        query = query_params_to_search_query({"page": "2", "sort": "title", "order": "asc", "type": "anime"})
        assert query == "type:anime"

    def test_exclusion_and_ranges(self):
        query = query_params_to_search_query({"exclude_type": "movie", "year_gt": "2010", "exclude_year_lt": "1990"})
        assert query == "-type:movie year:>2010 -year:<1990"

    def test_comma_values_split_into_tokens(self):
        assert query_params_to_search_query({"type": "movie,tv"}) == "type:movie type:tv"

    def test_values_with_space_or_colon_are_quoted(self):
        query = query_params_to_search_query({"tag": "Slice of Life,sci-fi:hard"})
        assert query == 'tag:"Slice of Life" tag:"sci-fi:hard"'

    def test_values_with_any_whitespace_are_quoted(self):
        assert query_params_to_search_query({"title": "Cowboy\tBebop"}) == 'title:"Cowboy\tBebop"'

    def test_accepts_pairs(self):
        pairs = [("title", "Dune"), ("page", "3"), ("score", "8")]
        assert query_params_to_search_query(pairs) == "title:Dune score:8"

    def test_empty_values_skipped(self):
        assert query_params_to_search_query({"title": "", "type": ",,"}) == ""

    def test_plain_text_comes_back_keyed(self):
        params = filters_to_query_params(parse_search_query("Dexter"))
        assert query_params_to_search_query(params) == "title:Dexter"


@pytest.mark.parametrize("query,context", [
    ("type:movie type:tv -status:completed", SearchContext.MEDIA),
    ('title:"Cowboy\tBebop" -tag:"Space\nWestern"', SearchContext.MEDIA),
    ('tag:"Slice of Life" year:<2001 score:>6', SearchContext.MEDIA),
    ("-year:2000 title:Dune -title:Messiah", SearchContext.MEDIA),
    ("name:Naruto media:Naruto -tag:villain appearances:>1", SearchContext.CHARACTER),
    ("user_status:current -user_status:dropped user_score:8", SearchContext.LIBRARY),
])
def test_round_trip_reproduces_filters(query, context):
    filters = parse_search_query(query, context)
    rebuilt = query_params_to_search_query(filters_to_query_params(filters))
    assert parse_search_query(rebuilt, context) == filters


def test_serialize_parse_is_idempotent():
    filters = parse_search_query('Naruto tag:"Slice of Life" -status:completed year:>2010')
    once = parse_search_query(query_params_to_search_query(filters_to_query_params(filters)))
    twice = parse_search_query(query_params_to_search_query(filters_to_query_params(once)))
    assert once == twice


def test_every_wire_key_is_consumed_by_an_endpoint():
    consumed = set()
    for filters in (MEDIA_FILTERS, CHARACTER_FILTERS, LIBRARY_FILTERS):
        consumed.update(accepted_params(filters))

    for field in FIELDS:
        for key in wire_keys(field):
            assert key in consumed, f"{key} is sent but no endpoint reads it"
