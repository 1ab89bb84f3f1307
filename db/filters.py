"""Build filtered, sorted, paginated listing queries from URL query params.

Each listing declares its filters as a tuple of ``ParamFilter``. A filter
reads its inclusion param (``key``, comma-separated) and, when excludable, its
exclusion param (``exclude_key``). Numeric filters read ``key``, ``key_gt`` and
``key_lt``; an exact value wins over the bounds. Anything missing or
malformed is skipped, so no params means no filtering.

Inclusion values are OR-ed, exclusion values are AND-ed, and separate keys
are AND-ed together.
"""

import copy
import logging
import math
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

SORT_ORDERS = ('asc', 'desc')
DEFAULT_SORT_ORDER = 'desc'

# SQLite INTEGER is a signed 64-bit value
SQLITE_INT_MIN = -2 ** 63
SQLITE_INT_MAX = 2 ** 63 - 1


class Match(str, Enum):
    LIKE = 'like'                  # substring, case-insensitive
    EXACT = 'exact'                # equality / IN
    NUMBER = 'number'              # exact int or _gt / _lt bounds
    RANGE = 'range'                # _gt / _lt bounds only
    EXISTS_LIKE = 'exists_like'    # substring match in a related table
    EXISTS_EXACT = 'exists_exact'  # equality in a related table


@dataclass(frozen=True)
class ParamFilter:
    key: str
    match: Match
    column: str
    # For EXISTS_* matches: correlated subquery with a {condition} placeholder
    subquery: Optional[str] = None
    excludable: bool = True

    @property
    def exclude_key(self) -> str:
        return f"exclude_{self.key}"

    def param_names(self) -> List[str]:
        """Query params this filter reads."""
        if self.match in (Match.NUMBER, Match.RANGE):
            bases = [self.key] + ([self.exclude_key] if self.excludable else [])
            names = []
            for base in bases:
                if self.match is Match.NUMBER:
                    names.append(base)
                names.extend([f"{base}_gt", f"{base}_lt"])
            return names
        return [self.key] + ([self.exclude_key] if self.excludable else [])


class FilterQuery:
    """A SELECT under construction: FROM/JOIN text, WHERE conditions, params."""

    def __init__(self, from_clause: str, conditions: Optional[List[str]] = None, params: Optional[List[Any]] = None):
        self.from_clause = from_clause
        self.conditions: List[str] = list(conditions or [])
        self.params: List[Any] = list(params or [])

    def where(self, condition: str, *params: Any) -> "FilterQuery":
        self.conditions.append(condition)
        self.params.extend(params)
        return self

    def clone(self) -> "FilterQuery":
        return copy.deepcopy(self)

    def where_sql(self) -> str:
        sql = ' WHERE 1=1'
        for condition in self.conditions:
            sql += f' AND {condition}'
        return sql

    def count(self, conn: sqlite3.Connection) -> int:
        sql = f'SELECT COUNT(*) as total FROM {self.from_clause}{self.where_sql()}'
        return conn.execute(sql, self.params).fetchone()['total']

    def fetch(
        self,
        conn: sqlite3.Connection,
        columns: str,
        order_by: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[sqlite3.Row]:
        sql = f'SELECT {columns} FROM {self.from_clause}{self.where_sql()} ORDER BY {order_by}'
        params = list(self.params)
        if limit is not None:
            sql += ' LIMIT ? OFFSET ?'
            params.extend([limit, offset])
        return conn.execute(sql, params).fetchall()


# --- value helpers ---

def split_values(raw: Optional[str]) -> List[str]:
    """Comma-split a list param, dropping empty entries."""
    if not raw:
        return []
    return [v for v in raw.split(',') if v != '']


def parse_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    if not SQLITE_INT_MIN <= value <= SQLITE_INT_MAX:
        return None
    return value


def like_pattern(value: str) -> str:
    """Wrap a value for a substring LIKE, escaping LIKE wildcards."""
    escaped = value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def _placeholders(count: int) -> str:
    return ', '.join('?' for _ in range(count))


def _like_any(column: str, values: List[str]) -> Tuple[str, List[str]]:
    parts = [f"{column} LIKE ? ESCAPE '\\'" for _ in values]
    condition = parts[0] if len(parts) == 1 else '(' + ' OR '.join(parts) + ')'
    return condition, [like_pattern(v) for v in values]


def _equals_any(column: str, values: List[str]) -> Tuple[str, List[str]]:
    if len(values) == 1:
        return f'{column} = ?', values
    return f'{column} IN ({_placeholders(len(values))})', values


# --- appliers, one per Match ---

def _apply_like(query: FilterQuery, f: ParamFilter, params: Mapping[str, str]) -> None:
    values = split_values(params.get(f.key))
    if values:
        query.where(*_pack(_like_any(f.column, values)))

    if f.excludable:
        # Each excluded value is its own predicate
        for value in split_values(params.get(f.exclude_key)):
            query.where(
                f"({f.column} IS NULL OR {f.column} NOT LIKE ? ESCAPE '\\')",
                like_pattern(value)
            )


def _apply_exact(query: FilterQuery, f: ParamFilter, params: Mapping[str, str]) -> None:
    values = split_values(params.get(f.key))
    if values:
        query.where(*_pack(_equals_any(f.column, values)))

    if f.excludable:
        excluded = split_values(params.get(f.exclude_key))
        if excluded:
            # Rows with no value at all are not excluded
            query.where(
                f'({f.column} IS NULL OR {f.column} NOT IN ({_placeholders(len(excluded))}))',
                *excluded
            )


def _apply_bounds(query: FilterQuery, column: str, base: str, params: Mapping[str, str]) -> None:
    gt = parse_int(params.get(f'{base}_gt'))
    lt = parse_int(params.get(f'{base}_lt'))
    if gt is not None:
        query.where(f'{column} > ?', gt)
    if lt is not None:
        query.where(f'{column} < ?', lt)


def _apply_number(query: FilterQuery, f: ParamFilter, params: Mapping[str, str]) -> None:
    exact = parse_int(params.get(f.key)) if f.match is Match.NUMBER else None
    if exact is not None:
        # Exact match wins over the bounds
        query.where(f'{f.column} = ?', exact)
    else:
        _apply_bounds(query, f.column, f.key, params)

    if not f.excludable:
        return

    # Exclusions combine freely
    excluded = parse_int(params.get(f.exclude_key)) if f.match is Match.NUMBER else None
    if excluded is not None:
        query.where(f'({f.column} IS NULL OR {f.column} != ?)', excluded)
    excluded_gt = parse_int(params.get(f'{f.exclude_key}_gt'))
    if excluded_gt is not None:
        query.where(f'({f.column} IS NULL OR NOT {f.column} > ?)', excluded_gt)
    excluded_lt = parse_int(params.get(f'{f.exclude_key}_lt'))
    if excluded_lt is not None:
        query.where(f'({f.column} IS NULL OR NOT {f.column} < ?)', excluded_lt)


def _apply_exists(query: FilterQuery, f: ParamFilter, params: Mapping[str, str]) -> None:
    build = _like_any if f.match is Match.EXISTS_LIKE else _equals_any

    values = split_values(params.get(f.key))
    if values:
        condition, values = build(f.column, values)
        query.where(f.subquery.format(condition=condition), *values)

    if f.excludable:
        excluded = split_values(params.get(f.exclude_key))
        if excluded:
            # NOT EXISTS any match == none of the excluded values match
            condition, excluded = build(f.column, excluded)
            query.where('NOT ' + f.subquery.format(condition=condition), *excluded)


def _pack(condition_and_params: Tuple[str, List[Any]]) -> Tuple[Any, ...]:
    condition, values = condition_and_params
    return (condition, *values)


_APPLIERS: Dict[Match, Callable[[FilterQuery, ParamFilter, Mapping[str, str]], None]] = {
    Match.LIKE: _apply_like,
    Match.EXACT: _apply_exact,
    Match.NUMBER: _apply_number,
    Match.RANGE: _apply_number,
    Match.EXISTS_LIKE: _apply_exists,
    Match.EXISTS_EXACT: _apply_exists,
}


def apply_filters(query: FilterQuery, params: Mapping[str, str], filters: Sequence[ParamFilter]) -> FilterQuery:
    """Add the WHERE conditions for every filter present in ``params``."""
    for f in filters:
        _APPLIERS[f.match](query, f, params)
    logger.debug(f"Applied filters: {query.conditions} params={query.params}")
    return query


def accepted_params(filters: Sequence[ParamFilter]) -> List[str]:
    names: List[str] = []
    for f in filters:
        names.extend(f.param_names())
    return names


# --- sorting and paging ---

def resolve_sort(
    sort: Optional[str],
    order: Optional[str],
    allowed: Mapping[str, str],
    default: str = 'created_at',
) -> Tuple[str, str]:
    """Map a requested sort key to an allowed column; bad input falls back to defaults."""
    column = allowed.get(sort or '', allowed[default])
    direction = order if order in SORT_ORDERS else DEFAULT_SORT_ORDER
    return column, direction


def paginate(
    conn: sqlite3.Connection,
    query: FilterQuery,
    columns: str,
    sort_column: str,
    sort_order: str,
    id_column: str,
    page: int,
    page_size: int,
) -> Dict[str, Any]:
    """Count and fetch one page from the same filtered base query."""
    page_size = min(max(1, page_size), SQLITE_INT_MAX)
    # Keep the OFFSET bindable; pages past the last row are empty anyway
    page = min(max(1, page), SQLITE_INT_MAX // page_size)

    total = query.clone().count(conn)
    # id breaks ties so pages never overlap or skip rows
    order_by = f'{sort_column} {sort_order.upper()}, {id_column} ASC'
    rows = query.fetch(conn, columns, order_by, limit=page_size, offset=(page - 1) * page_size)

    return {
        'rows': rows,
        'total': total,
        'page': page,
        'page_size': page_size,
        'total_pages': math.ceil(total / page_size),
    }
