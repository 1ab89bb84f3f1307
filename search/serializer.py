"""Convert between ``SearchFilters``, URL query params and display strings."""

import re
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from search.fields import (
    FIELDS,
    NON_FILTER_PARAMS,
    FilterField,
    FilterKind,
)
from search.models import NumberFilter, Range, SearchFilters


QueryParams = Dict[str, str]
ParamSource = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _emit_list(params: QueryParams, wire_key: str, values: Optional[List[str]]) -> None:
    if values:
        params[wire_key] = ",".join(values)


def _emit_number(params: QueryParams, wire_key: str, value: Optional[NumberFilter]) -> None:
    if value is None:
        return
    if isinstance(value, Range):
        if value.gt is not None:
            params[f"{wire_key}_gt"] = str(value.gt)
        elif value.lt is not None:
            params[f"{wire_key}_lt"] = str(value.lt)
    else:
        params[wire_key] = str(value)


_EMITTERS: Dict[FilterKind, Callable[[QueryParams, str, object], None]] = {
    FilterKind.TEXT_LIST: _emit_list,
    FilterKind.NUMBER: _emit_number,
    FilterKind.RANGE: _emit_number,
}


def filters_to_query_params(
    filters: SearchFilters,
    sort: Optional[str] = None,
    order: Optional[str] = None,
) -> QueryParams:
    """Flatten filters into query-string params for the listing endpoints.

    List values are comma-joined; numeric filters emit ``key``, ``key_gt``
    or ``key_lt``; exclusions use the ``exclude_`` prefix. Empty filters are
    left out.
    """
    params: QueryParams = {}
    for field in FIELDS:
        emit = _EMITTERS[field.kind]
        emit(params, field.key, getattr(filters, field.key))
        if field.excludable:
            emit(params, field.exclude_key, getattr(filters, field.exclude_key))

    if sort:
        params["sort"] = sort
    if order:
        params["order"] = order
    return params


_NEEDS_QUOTES = re.compile(r"[\s:]")


def _quote(value: str) -> str:
    if _NEEDS_QUOTES.search(value):
        return f'"{value}"'
    return value


def _param_items(source: ParamSource) -> Iterable[Tuple[str, str]]:
    if isinstance(source, Mapping):
        return source.items()
    return source


def query_params_to_search_query(source: ParamSource) -> str:
    """Rebuild a display query string from URL query params.

    This is best-effort: plain text typed by the user was folded into
    ``title``/``name`` and comes back as ``title:...``.
    """
    tokens: List[str] = []
    for wire_key, raw_value in _param_items(source):
        if wire_key in NON_FILTER_PARAMS or raw_value is None or raw_value == "":
            continue

        prefix = ""
        key = wire_key
        if key.startswith("exclude_"):
            prefix = "-"
            key = key[len("exclude_"):]

        operator = None
        if key.endswith("_gt"):
            operator, key = ">", key[:-len("_gt")]
        elif key.endswith("_lt"):
            operator, key = "<", key[:-len("_lt")]

        if operator:
            tokens.append(f"{prefix}{key}:{operator}{raw_value}")
            continue

        for value in str(raw_value).split(","):
            if value:
                tokens.append(f"{prefix}{key}:{_quote(value)}")

    return " ".join(tokens)


def handled_kinds() -> frozenset:
    """Filter kinds the serializer knows how to emit."""
    return frozenset(_EMITTERS)


def wire_keys(field: FilterField) -> List[str]:
    """Every query param name a field can produce."""
    bases = [field.key]
    if field.excludable:
        bases.append(field.exclude_key)
    keys: List[str] = []
    for base in bases:
        if field.kind is FilterKind.TEXT_LIST:
            keys.append(base)
        elif field.kind is FilterKind.NUMBER:
            keys.extend([base, f"{base}_gt", f"{base}_lt"])
        else:
            keys.extend([f"{base}_gt", f"{base}_lt"])
    return keys
