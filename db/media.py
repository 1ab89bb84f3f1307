import sqlite3
from typing import Optional, Dict, Any, List, Mapping, Iterable
from .connection import get_db_connection
from .filters import FilterQuery, Match, ParamFilter, apply_filters, paginate, resolve_sort

MEDIA_FROM = '''media
    JOIN media_types ON media.type_id = media_types.id
    JOIN media_status_types ON media.status_id = media_status_types.id
    LEFT JOIN users creator ON media.created_by = creator.id'''

MEDIA_COLUMNS = '''media.id, media.title, media.release_year, media.description, media.created_at,
    media.type_id, media_types.name as type_name,
    media.status_id, media_status_types.name as status_name,
    media.created_by, creator.username as created_by_username,
    (SELECT AVG(um.score) FROM user_media um WHERE um.media_id = media.id) as average_score'''

# Community score: average of all user scores, rounded
MEDIA_SCORE = '(SELECT ROUND(AVG(um.score)) FROM user_media um WHERE um.media_id = media.id)'

MEDIA_TAG_EXISTS = '''EXISTS (SELECT 1 FROM media_tags mt JOIN tags t ON t.id = mt.tag_id
    WHERE mt.media_id = media.id AND {condition})'''

MEDIA_FILTERS = (
    ParamFilter('title', Match.LIKE, 'media.title'),
    ParamFilter('type', Match.EXACT, 'media_types.name'),
    ParamFilter('status', Match.EXACT, 'media_status_types.name'),
    ParamFilter('tag', Match.EXISTS_EXACT, 't.name', subquery=MEDIA_TAG_EXISTS),
    ParamFilter('year', Match.NUMBER, 'media.release_year'),
    ParamFilter('score', Match.NUMBER, MEDIA_SCORE, excludable=False),
)

MEDIA_SORTS = {
    'title': 'media.title',
    'release_year': 'media.release_year',
    'created_at': 'media.created_at',
}

def get_tags_for_media(conn: sqlite3.Connection, media_ids: Iterable[int]) -> Dict[int, List[str]]:
    """Tag names per media id, sorted by name"""
    ids = list(media_ids)
    tags: Dict[int, List[str]] = {media_id: [] for media_id in ids}
    if not ids:
        return tags
    placeholders = ', '.join('?' for _ in ids)
    rows = conn.execute(
        f'''SELECT mt.media_id, t.name FROM media_tags mt
            JOIN tags t ON t.id = mt.tag_id
            WHERE mt.media_id IN ({placeholders})
            ORDER BY t.name''',
        ids
    ).fetchall()
    for row in rows:
        tags[row['media_id']].append(row['name'])
    return tags

def format_media(row: sqlite3.Row, tags: Optional[List[str]] = None) -> Dict[str, Any]:
    average = row['average_score']
    return {
        "id": row['id'],
        "title": row['title'],
        "type": {"id": row['type_id'], "name": row['type_name']},
        "release_year": row['release_year'],
        "status": {"id": row['status_id'], "name": row['status_name']},
        "description": row['description'],
        "average_score": round(average, 1) if average is not None else None,
        "tags": tags or [],
        "created_by": {"id": row['created_by'], "username": row['created_by_username']} if row['created_by'] else None,
        "created_at": row['created_at'],
    }

def list_media(params: Mapping[str, str], page: int = 1, page_size: int = 20,
               sort: Optional[str] = None, order: Optional[str] = None) -> Dict[str, Any]:
    """Filtered, sorted page of the media catalog"""
    query = apply_filters(FilterQuery(MEDIA_FROM), params, MEDIA_FILTERS)
    sort_column, sort_order = resolve_sort(sort, order, MEDIA_SORTS)

    conn = get_db_connection()
    try:
        result = paginate(conn, query, MEDIA_COLUMNS, sort_column, sort_order, 'media.id', page, page_size)
        rows = result.pop('rows')
        tags = get_tags_for_media(conn, [r['id'] for r in rows])
    finally:
        conn.close()

    return {"media": [format_media(r, tags[r['id']]) for r in rows], **result}

def get_media(media_id: int) -> Optional[Dict[str, Any]]:
    conn = get_db_connection()
    try:
        row = conn.execute(
            f'SELECT {MEDIA_COLUMNS} FROM {MEDIA_FROM} WHERE media.id = ?',
            (media_id,)
        ).fetchone()
        if not row:
            return None
        return format_media(row, get_tags_for_media(conn, [media_id])[media_id])
    finally:
        conn.close()

def _lookup_rows(table: str) -> List[Dict[str, Any]]:
    conn = get_db_connection()
    rows = conn.execute(f'SELECT id, name FROM {table} ORDER BY name ASC').fetchall()
    conn.close()
    return [dict(r) for r in rows]

def get_media_types() -> List[Dict[str, Any]]:
    return _lookup_rows('media_types')

def get_media_statuses() -> List[Dict[str, Any]]:
    return _lookup_rows('media_status_types')

def lookup_exists(table: str, row_id: int) -> bool:
    conn = get_db_connection()
    row = conn.execute(f'SELECT 1 FROM {table} WHERE id = ?', (row_id,)).fetchone()
    conn.close()
    return row is not None

def create_media(title: str, type_id: int, status_id: int, created_by: int,
                 release_year: Optional[int] = None, description: Optional[str] = None) -> Optional[int]:
    """Insert a media entry. Returns None if a foreign key does not exist."""
    conn = get_db_connection()
    try:
        cursor = conn.execute(
            '''INSERT INTO media (title, type_id, release_year, status_id, description, created_by)
               VALUES (?, ?, ?, ?, ?, ?)''',
            (title, type_id, release_year, status_id, description, created_by)
        )
        conn.commit()
        return cursor.lastrowid
    except sqlite3.IntegrityError:
        return None
    finally:
        conn.close()

def update_media(media_id: int, **kwargs) -> bool:
    """Update media fields.

    Available kwargs: title, type_id, release_year, status_id, description
    """
    allowed_fields = {'title', 'type_id', 'release_year', 'status_id', 'description'}
    updates = []
    values: List[Any] = []
    for key, value in kwargs.items():
        if key not in allowed_fields:
            continue
        updates.append(f'{key} = ?')
        values.append(value)

    if not updates:
        return False

    values.append(media_id)
    conn = get_db_connection()
    try:
        cursor = conn.execute(f'UPDATE media SET {", ".join(updates)} WHERE id = ?', values)
        conn.commit()
        return cursor.rowcount > 0
    except sqlite3.IntegrityError:
        return False
    finally:
        conn.close()

def delete_media(media_id: int) -> bool:
    conn = get_db_connection()
    cursor = conn.execute('DELETE FROM media WHERE id = ?', (media_id,))
    conn.commit()
    conn.close()
    return cursor.rowcount > 0

def add_media_tag(media_id: int, name: str) -> bool:
    """Attach a tag (created on first use). Returns False if already attached."""
    conn = get_db_connection()
    try:
        conn.execute('INSERT OR IGNORE INTO tags (name) VALUES (?)', (name,))
        tag_id = conn.execute('SELECT id FROM tags WHERE name = ?', (name,)).fetchone()['id']
        cursor = conn.execute(
            'INSERT OR IGNORE INTO media_tags (media_id, tag_id) VALUES (?, ?)',
            (media_id, tag_id)
        )
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()

def remove_media_tag(media_id: int, name: str) -> bool:
    conn = get_db_connection()
    cursor = conn.execute(
        '''DELETE FROM media_tags
           WHERE media_id = ? AND tag_id IN (SELECT id FROM tags WHERE name = ?)''',
        (media_id, name)
    )
    conn.commit()
    conn.close()
    return cursor.rowcount > 0
