import sqlite3
from typing import Optional, Dict, Any, List, Mapping
from .connection import get_db_connection
from .filters import FilterQuery, Match, ParamFilter, apply_filters, like_pattern, paginate, resolve_sort
from .media import MEDIA_TAG_EXISTS

LIBRARY_FROM = '''user_media
    JOIN media ON user_media.media_id = media.id
    JOIN media_types ON media.type_id = media_types.id
    JOIN media_status_types ON media.status_id = media_status_types.id
    LEFT JOIN user_media_status_types ON user_media.status_id = user_media_status_types.id'''

LIBRARY_COLUMNS = '''user_media.id, user_media.user_id, user_media.media_id,
    user_media.current_progress, user_media.status_id,
    user_media_status_types.name as user_status_name,
    user_media.progress_updated, user_media.score, user_media.review,
    user_media.rating_created, user_media.created_at,
    media.title, media.type_id, media_types.name as type_name, media.release_year,
    media.status_id as media_status_id, media_status_types.name as media_status_name,
    media.description'''

LIBRARY_FILTERS = (
    ParamFilter('title', Match.LIKE, 'media.title'),
    ParamFilter('type', Match.EXACT, 'media_types.name'),
    ParamFilter('status', Match.EXACT, 'media_status_types.name'),
    ParamFilter('tag', Match.EXISTS_EXACT, 't.name', subquery=MEDIA_TAG_EXISTS),
    ParamFilter('year', Match.NUMBER, 'media.release_year'),
    ParamFilter('user_status', Match.EXACT, 'user_media_status_types.name'),
    ParamFilter('user_score', Match.NUMBER, 'user_media.score', excludable=False),
)

LIBRARY_SORTS = {
    'title': 'media.title',
    'release_year': 'media.release_year',
    'user_score': 'user_media.score',
    'progress_updated': 'user_media.progress_updated',
    'created_at': 'user_media.created_at',
}

def format_entry(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row['id'],
        "user_id": row['user_id'],
        "media": {
            "id": row['media_id'],
            "title": row['title'],
            "type": {"id": row['type_id'], "name": row['type_name']},
            "release_year": row['release_year'],
            "status": {"id": row['media_status_id'], "name": row['media_status_name']},
            "description": row['description'],
        },
        "current_progress": row['current_progress'],
        "status": {"id": row['status_id'], "name": row['user_status_name']} if row['status_id'] else None,
        "progress_updated": row['progress_updated'],
        "score": row['score'],
        "review": row['review'],
        "rating_created": row['rating_created'],
        "created_at": row['created_at'],
    }

def _user_library(user_id: int) -> FilterQuery:
    return FilterQuery(LIBRARY_FROM).where('user_media.user_id = ?', user_id)

def list_library(user_id: int, params: Mapping[str, str], page: int = 1, page_size: int = 20,
                 sort: Optional[str] = None, order: Optional[str] = None) -> Dict[str, Any]:
    """Filtered, sorted page of one user's library"""
    query = apply_filters(_user_library(user_id), params, LIBRARY_FILTERS)
    sort_column, sort_order = resolve_sort(sort, order, LIBRARY_SORTS)

    conn = get_db_connection()
    try:
        result = paginate(conn, query, LIBRARY_COLUMNS, sort_column, sort_order, 'user_media.id', page, page_size)
    finally:
        conn.close()

    rows = result.pop('rows')
    return {"user_media": [format_entry(r) for r in rows], **result}

def get_entry(user_id: int, entry_id: int) -> Optional[Dict[str, Any]]:
    conn = get_db_connection()
    query = _user_library(user_id).where('user_media.id = ?', entry_id)
    rows = query.fetch(conn, LIBRARY_COLUMNS, 'user_media.id ASC', limit=1)
    conn.close()
    return format_entry(rows[0]) if rows else None

def get_user_statuses() -> List[Dict[str, Any]]:
    conn = get_db_connection()
    rows = conn.execute('SELECT id, name FROM user_media_status_types ORDER BY id ASC').fetchall()
    conn.close()
    return [dict(r) for r in rows]

def add_entry(user_id: int, media_id: int, current_progress: Optional[str] = None,
              status_id: Optional[int] = None, score: Optional[int] = None,
              review: Optional[str] = None) -> Optional[int]:
    """Add media to a user's library. Returns None if it is already there."""
    conn = get_db_connection()
    try:
        cursor = conn.execute(
            '''INSERT INTO user_media
               (user_id, media_id, current_progress, status_id, progress_updated,
                score, review, rating_created)
               VALUES (?, ?, ?, ?, CASE WHEN ? THEN CURRENT_TIMESTAMP END,
                       ?, ?, CASE WHEN ? THEN CURRENT_TIMESTAMP END)''',
            (user_id, media_id, current_progress or None, status_id or None,
             bool(current_progress or status_id),
             score, review or None,
             bool(score is not None or review))
        )
        conn.commit()
        return cursor.lastrowid
    except sqlite3.IntegrityError:
        return None
    finally:
        conn.close()

def update_entry(user_id: int, entry_id: int, changes: Dict[str, Any]) -> bool:
    """Apply the given changes (current_progress, status_id, score, review).

    Progress or status changes bump progress_updated; the first score or
    review sets rating_created.
    """
    updates = []
    values: List[Any] = []

    if 'current_progress' in changes:
        updates.append('current_progress = ?')
        values.append(changes['current_progress'] or None)
    if 'status_id' in changes:
        updates.append('status_id = ?')
        values.append(changes['status_id'] or None)
    if 'current_progress' in changes or 'status_id' in changes:
        updates.append('progress_updated = CURRENT_TIMESTAMP')

    if 'score' in changes:
        updates.append('score = ?')
        values.append(changes['score'])
    if 'review' in changes:
        updates.append('review = ?')
        values.append(changes['review'] or None)
    if 'score' in changes or 'review' in changes:
        updates.append('rating_created = COALESCE(rating_created, CURRENT_TIMESTAMP)')

    if not updates:
        return False

    values.extend([entry_id, user_id])
    conn = get_db_connection()
    cursor = conn.execute(
        f'UPDATE user_media SET {", ".join(updates)} WHERE id = ? AND user_id = ?',
        values
    )
    conn.commit()
    conn.close()
    return cursor.rowcount > 0

def delete_entry(user_id: int, entry_id: int) -> bool:
    conn = get_db_connection()
    cursor = conn.execute('DELETE FROM user_media WHERE id = ? AND user_id = ?', (entry_id, user_id))
    conn.commit()
    conn.close()
    return cursor.rowcount > 0

# Value suggestions for the search box, per filter key
_AUTOCOMPLETE_SQL = {
    'title': '''SELECT media.title as value, COUNT(*) as count
        FROM user_media JOIN media ON user_media.media_id = media.id
        WHERE user_media.user_id = ? AND media.title LIKE ? ESCAPE '\\'
        GROUP BY media.title ORDER BY media.title ASC LIMIT ?''',
    'type': '''SELECT media_types.name as value, COUNT(*) as count
        FROM user_media JOIN media ON user_media.media_id = media.id
        JOIN media_types ON media.type_id = media_types.id
        WHERE user_media.user_id = ? AND media_types.name LIKE ? ESCAPE '\\'
        GROUP BY media_types.id ORDER BY count DESC, value ASC LIMIT ?''',
    'status': '''SELECT media_status_types.name as value, COUNT(*) as count
        FROM user_media JOIN media ON user_media.media_id = media.id
        JOIN media_status_types ON media.status_id = media_status_types.id
        WHERE user_media.user_id = ? AND media_status_types.name LIKE ? ESCAPE '\\'
        GROUP BY media_status_types.id ORDER BY count DESC, value ASC LIMIT ?''',
    'user_status': '''SELECT user_media_status_types.name as value, COUNT(*) as count
        FROM user_media JOIN user_media_status_types ON user_media.status_id = user_media_status_types.id
        WHERE user_media.user_id = ? AND user_media_status_types.name LIKE ? ESCAPE '\\'
        GROUP BY user_media_status_types.id ORDER BY count DESC, value ASC LIMIT ?''',
    'tag': '''SELECT tags.name as value, COUNT(*) as count
        FROM user_media JOIN media_tags ON media_tags.media_id = user_media.media_id
        JOIN tags ON tags.id = media_tags.tag_id
        WHERE user_media.user_id = ? AND tags.name LIKE ? ESCAPE '\\'
        GROUP BY tags.id ORDER BY count DESC, value ASC LIMIT ?''',
}

AUTOCOMPLETE_MAX = 20

def autocomplete(user_id: int, key: str, query: str, limit: int = 5) -> List[Dict[str, Any]]:
    """Suggest values for ``key`` from the user's library. Numeric and unknown keys get nothing."""
    sql = _AUTOCOMPLETE_SQL.get(key)
    if sql is None:
        return []
    limit = max(1, min(limit, AUTOCOMPLETE_MAX))
    conn = get_db_connection()
    rows = conn.execute(sql, (user_id, like_pattern(query), limit)).fetchall()
    conn.close()
    return [dict(r) for r in rows]
