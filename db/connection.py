import sqlite3
from config import DB_PATH

# Schema version for migration tracking
SCHEMA_VERSION = 1

# Lookup values seeded on every start (INSERT OR IGNORE)
MEDIA_TYPES = ('novel', 'tv_series', 'anime', 'movie', 'comic', 'manga', 'video_game')
MEDIA_STATUS_TYPES = ('ongoing', 'completed', 'hiatus', 'upcoming')
USER_MEDIA_STATUS_TYPES = ('planning', 'current', 'completed', 'dropped', 'on_hold')

def get_db_connection() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    # Ensure WAL mode is active for this connection
    conn.execute('PRAGMA journal_mode=WAL')
    conn.execute('PRAGMA foreign_keys=ON')
    return conn

def init_db() -> None:
    conn = get_db_connection()

    conn.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            email TEXT,
            role TEXT DEFAULT 'user' CHECK(role IN ('admin', 'user')),
            must_change_password BOOLEAN DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_login TIMESTAMP
        )
    ''')

    # Sessions table for token-based auth
    conn.execute('''
        CREATE TABLE IF NOT EXISTS sessions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            token TEXT UNIQUE NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            expires_at TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
        )
    ''')

    # Lookup tables
    for table in ('media_types', 'media_status_types', 'user_media_status_types'):
        conn.execute(f'''
            CREATE TABLE IF NOT EXISTS {table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL COLLATE NOCASE
            )
        ''')

    conn.execute('''
        CREATE TABLE IF NOT EXISTS media (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            type_id INTEGER NOT NULL,
            release_year INTEGER,
            status_id INTEGER NOT NULL,
            description TEXT,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (type_id) REFERENCES media_types(id) ON DELETE RESTRICT,
            FOREIGN KEY (status_id) REFERENCES media_status_types(id) ON DELETE RESTRICT,
            FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE SET NULL
        )
    ''')

    conn.execute('''
        CREATE TABLE IF NOT EXISTS characters (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            details TEXT,
            wiki_url TEXT,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE SET NULL
        )
    ''')

    conn.execute('''
        CREATE TABLE IF NOT EXISTS character_roles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL COLLATE NOCASE,
            created_by INTEGER,
            FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE SET NULL
        )
    ''')

    conn.execute('''
        CREATE TABLE IF NOT EXISTS media_characters (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            media_id INTEGER NOT NULL,
            character_id INTEGER NOT NULL,
            role_id INTEGER NOT NULL,
            FOREIGN KEY (media_id) REFERENCES media(id) ON DELETE CASCADE,
            FOREIGN KEY (character_id) REFERENCES characters(id) ON DELETE CASCADE,
            FOREIGN KEY (role_id) REFERENCES character_roles(id) ON DELETE RESTRICT,
            UNIQUE(media_id, character_id)
        )
    ''')

    conn.execute('''
        CREATE TABLE IF NOT EXISTS tags (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL COLLATE NOCASE
        )
    ''')

    conn.execute('''
        CREATE TABLE IF NOT EXISTS media_tags (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            media_id INTEGER NOT NULL,
            tag_id INTEGER NOT NULL,
            FOREIGN KEY (media_id) REFERENCES media(id) ON DELETE CASCADE,
            FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE,
            UNIQUE(media_id, tag_id)
        )
    ''')

    # Personal library: progress and rating per user and media
    conn.execute('''
        CREATE TABLE IF NOT EXISTS user_media (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            media_id INTEGER NOT NULL,
            current_progress TEXT,
            status_id INTEGER,
            progress_updated TIMESTAMP,
            score INTEGER CHECK(score IS NULL OR (score >= 0 AND score <= 10)),
            review TEXT,
            rating_created TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
            FOREIGN KEY (media_id) REFERENCES media(id) ON DELETE CASCADE,
            FOREIGN KEY (status_id) REFERENCES user_media_status_types(id) ON DELETE RESTRICT,
            UNIQUE(user_id, media_id)
        )
    ''')

    # Indexes for the filtered listings
    conn.execute('CREATE INDEX IF NOT EXISTS idx_media_title ON media(title)')
    conn.execute('CREATE INDEX IF NOT EXISTS idx_media_release_year ON media(release_year)')
    conn.execute('CREATE INDEX IF NOT EXISTS idx_media_characters_character ON media_characters(character_id)')
    conn.execute('CREATE INDEX IF NOT EXISTS idx_media_tags_tag ON media_tags(tag_id)')
    conn.execute('CREATE INDEX IF NOT EXISTS idx_user_media_user ON user_media(user_id)')

    seed_lookup_tables(conn)

    conn.execute(f'PRAGMA user_version = {SCHEMA_VERSION}')
    conn.commit()
    conn.close()

def seed_lookup_tables(conn: sqlite3.Connection) -> None:
    """Insert the default media types and statuses if missing"""
    for table, names in (
        ('media_types', MEDIA_TYPES),
        ('media_status_types', MEDIA_STATUS_TYPES),
        ('user_media_status_types', USER_MEDIA_STATUS_TYPES),
    ):
        conn.executemany(
            f'INSERT OR IGNORE INTO {table} (name) VALUES (?)',
            [(name,) for name in names]
        )
