import sqlite3
from typing import Optional, Dict, Any, List, Mapping
from .connection import get_db_connection
from .filters import FilterQuery, Match, ParamFilter, apply_filters, like_pattern, paginate, resolve_sort

CHARACTER_FROM = 'characters LEFT JOIN users creator ON characters.created_by = creator.id'

APPEARANCES = '(SELECT COUNT(*) FROM media_characters mc WHERE mc.character_id = characters.id)'

CHARACTER_COLUMNS = f'''characters.id, characters.name, characters.details, characters.wiki_url,
    characters.created_at, characters.updated_at,
    characters.created_by, creator.username as created_by_username,
    {APPEARANCES} as media_count'''

CHARACTER_MEDIA_EXISTS = '''EXISTS (SELECT 1 FROM media_characters mc JOIN media m ON m.id = mc.media_id
    WHERE mc.character_id = characters.id AND {condition})'''

# Roles double as character tags (tag:protagonist, -tag:villain)
CHARACTER_ROLE_EXISTS = '''EXISTS (SELECT 1 FROM media_characters mc JOIN character_roles cr ON cr.id = mc.role_id
    WHERE mc.character_id = characters.id AND {condition})'''

CHARACTER_FILTERS = (
    ParamFilter('name', Match.LIKE, 'characters.name'),
    ParamFilter('media', Match.EXISTS_LIKE, 'm.title', subquery=CHARACTER_MEDIA_EXISTS),
    ParamFilter('tag', Match.EXISTS_EXACT, 'cr.name', subquery=CHARACTER_ROLE_EXISTS),
    ParamFilter('appearances', Match.RANGE, APPEARANCES, excludable=False),
)

CHARACTER_SORTS = {
    'name': 'characters.name',
    'appearances': 'media_count',
    'created_at': 'characters.created_at',
}

def format_character(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row['id'],
        "name": row['name'],
        "details": row['details'],
        "wiki_url": row['wiki_url'],
        "media_count": row['media_count'],
        "created_by": {"id": row['created_by'], "username": row['created_by_username']} if row['created_by'] else None,
        "created_at": row['created_at'],
        "updated_at": row['updated_at'],
    }

def list_characters(params: Mapping[str, str], page: int = 1, page_size: int = 20,
                    sort: Optional[str] = None, order: Optional[str] = None) -> Dict[str, Any]:
    """Filtered, sorted page of characters"""
    query = apply_filters(FilterQuery(CHARACTER_FROM), params, CHARACTER_FILTERS)
    sort_column, sort_order = resolve_sort(sort, order, CHARACTER_SORTS)

    conn = get_db_connection()
    try:
        result = paginate(conn, query, CHARACTER_COLUMNS, sort_column, sort_order, 'characters.id', page, page_size)
    finally:
        conn.close()

    rows = result.pop('rows')
    return {"characters": [format_character(r) for r in rows], **result}

def get_character(character_id: int) -> Optional[Dict[str, Any]]:
    conn = get_db_connection()
    row = conn.execute(
        f'SELECT {CHARACTER_COLUMNS} FROM {CHARACTER_FROM} WHERE characters.id = ?',
        (character_id,)
    ).fetchone()
    conn.close()
    return format_character(row) if row else None

def create_character(name: str, created_by: int, details: Optional[str] = None, wiki_url: Optional[str] = None) -> int:
    conn = get_db_connection()
    cursor = conn.execute(
        'INSERT INTO characters (name, details, wiki_url, created_by) VALUES (?, ?, ?, ?)',
        (name, details, wiki_url, created_by)
    )
    conn.commit()
    conn.close()
    return cursor.lastrowid

def update_character(character_id: int, **kwargs) -> bool:
    """Update character fields.

    Available kwargs: name, details, wiki_url
    """
    allowed_fields = {'name', 'details', 'wiki_url'}
    updates = []
    values: List[Any] = []
    for key, value in kwargs.items():
        if key in allowed_fields:
            updates.append(f'{key} = ?')
            values.append(value)

    if not updates:
        return False

    updates.append('updated_at = CURRENT_TIMESTAMP')
    values.append(character_id)
    conn = get_db_connection()
    cursor = conn.execute(f'UPDATE characters SET {", ".join(updates)} WHERE id = ?', values)
    conn.commit()
    conn.close()
    return cursor.rowcount > 0

def delete_character(character_id: int) -> bool:
    conn = get_db_connection()
    cursor = conn.execute('DELETE FROM characters WHERE id = ?', (character_id,))
    conn.commit()
    conn.close()
    return cursor.rowcount > 0

# --- Roles ---

def get_roles(name: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
    """Roles ordered by name, optionally narrowed by a substring (typeahead)"""
    conn = get_db_connection()
    sql = 'SELECT id, name FROM character_roles WHERE 1=1'
    params: List[Any] = []
    if name:
        sql += " AND name LIKE ? ESCAPE '\\'"
        params.append(like_pattern(name))
    sql += ' ORDER BY name ASC LIMIT ?'
    params.append(limit)
    rows = conn.execute(sql, params).fetchall()
    conn.close()
    return [dict(r) for r in rows]

def get_role(role_id: int) -> Optional[Dict[str, Any]]:
    conn = get_db_connection()
    row = conn.execute('SELECT id, name FROM character_roles WHERE id = ?', (role_id,)).fetchone()
    conn.close()
    return dict(row) if row else None

def create_role(name: str, created_by: int) -> Optional[int]:
    """Returns role id, or None on duplicate name."""
    conn = get_db_connection()
    try:
        cursor = conn.execute(
            'INSERT INTO character_roles (name, created_by) VALUES (?, ?)',
            (name, created_by)
        )
        conn.commit()
        return cursor.lastrowid
    except sqlite3.IntegrityError:
        return None
    finally:
        conn.close()

def delete_role(role_id: int) -> bool:
    """Returns False while the role is still assigned to a character."""
    conn = get_db_connection()
    try:
        conn.execute('DELETE FROM character_roles WHERE id = ?', (role_id,))
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        return False
    finally:
        conn.close()

# --- Media <-> character links ---

def get_character_media(character_id: int) -> List[Dict[str, Any]]:
    """Media a character appears in, with the role played"""
    conn = get_db_connection()
    rows = conn.execute(
        '''SELECT mc.id, m.id as media_id, m.title, m.release_year,
                  mt.id as type_id, mt.name as type_name,
                  cr.id as role_id, cr.name as role_name
           FROM media_characters mc
           JOIN media m ON m.id = mc.media_id
           JOIN media_types mt ON mt.id = m.type_id
           JOIN character_roles cr ON cr.id = mc.role_id
           WHERE mc.character_id = ?
           ORDER BY m.release_year, m.title''',
        (character_id,)
    ).fetchall()
    conn.close()
    return [
        {
            "id": r['id'],
            "media": {
                "id": r['media_id'],
                "title": r['title'],
                "release_year": r['release_year'],
                "type": {"id": r['type_id'], "name": r['type_name']},
            },
            "role": {"id": r['role_id'], "name": r['role_name']},
        }
        for r in rows
    ]

def get_media_characters(media_id: int) -> List[Dict[str, Any]]:
    """Characters of a media entry, with their roles"""
    conn = get_db_connection()
    rows = conn.execute(
        '''SELECT mc.id, c.id as character_id, c.name, cr.id as role_id, cr.name as role_name
           FROM media_characters mc
           JOIN characters c ON c.id = mc.character_id
           JOIN character_roles cr ON cr.id = mc.role_id
           WHERE mc.media_id = ?
           ORDER BY cr.name, c.name''',
        (media_id,)
    ).fetchall()
    conn.close()
    return [
        {
            "id": r['id'],
            "character": {"id": r['character_id'], "name": r['name']},
            "role": {"id": r['role_id'], "name": r['role_name']},
        }
        for r in rows
    ]

def link_character(media_id: int, character_id: int, role_id: int) -> Optional[int]:
    """Returns link id, or None if the character is already linked or an id is unknown."""
    conn = get_db_connection()
    try:
        cursor = conn.execute(
            'INSERT INTO media_characters (media_id, character_id, role_id) VALUES (?, ?, ?)',
            (media_id, character_id, role_id)
        )
        conn.commit()
        return cursor.lastrowid
    except sqlite3.IntegrityError:
        return None
    finally:
        conn.close()

def unlink_character(media_id: int, character_id: int) -> bool:
    conn = get_db_connection()
    cursor = conn.execute(
        'DELETE FROM media_characters WHERE media_id = ? AND character_id = ?',
        (media_id, character_id)
    )
    conn.commit()
    conn.close()
    return cursor.rowcount > 0
