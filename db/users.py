import bcrypt
import secrets
import sqlite3
from typing import Optional, Dict, Any
from .connection import get_db_connection


def create_user(username: str, password: str, email: Optional[str] = None, role: str = 'user', must_change_password: bool = False) -> Optional[int]:
    """Create a new user with hashed password"""
    conn = get_db_connection()
    salt = bcrypt.gensalt()
    password_hash = bcrypt.hashpw(password.encode(), salt).decode('utf-8')

    try:
        cursor = conn.execute(
            'INSERT INTO users (username, password_hash, email, role, must_change_password) VALUES (?, ?, ?, ?, ?)',
            (username, password_hash, email, role, 1 if must_change_password else 0)
        )
        conn.commit()
        return cursor.lastrowid
    except sqlite3.IntegrityError:
        return None
    finally:
        conn.close()

def authenticate_user(username: str, password: str) -> Optional[Dict[str, Any]]:
    """Authenticate user and return user data if valid"""
    conn = get_db_connection()
    try:
        user = conn.execute(
            'SELECT id, username, password_hash, email, role, must_change_password FROM users WHERE username = ?',
            (username,)
        ).fetchone()

        if not user or not bcrypt.checkpw(password.encode(), user['password_hash'].encode()):
            return None

        conn.execute(
            'UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE id = ?',
            (user['id'],)
        )
        conn.commit()
        user_dict = dict(user)
        del user_dict['password_hash']
        return user_dict
    finally:
        conn.close()

def create_session(user_id: int, expires_hours: int = 24) -> str:
    """Create a new session token"""
    conn = get_db_connection()
    token = secrets.token_urlsafe(32)

    conn.execute(
        '''INSERT INTO sessions (user_id, token, expires_at)
           VALUES (?, ?, datetime('now', ?))''',
        (user_id, token, f"{expires_hours:+d} hours")
    )
    conn.commit()
    conn.close()
    return token

def validate_session(token: str) -> Optional[int]:
    """Validate session token and return user_id if valid"""
    conn = get_db_connection()
    session = conn.execute(
        '''SELECT user_id FROM sessions
           WHERE token = ? AND expires_at > datetime('now')''',
        (token,)
    ).fetchone()
    conn.close()
    return session['user_id'] if session else None

def delete_session(token: str) -> None:
    """Delete a session (logout)"""
    conn = get_db_connection()
    conn.execute('DELETE FROM sessions WHERE token = ?', (token,))
    conn.commit()
    conn.close()

def get_user(user_id: int) -> Optional[Dict[str, Any]]:
    conn = get_db_connection()
    user = conn.execute(
        'SELECT id, username, email, role, must_change_password FROM users WHERE id = ?',
        (user_id,)
    ).fetchone()
    conn.close()
    return dict(user) if user else None

def count_users() -> int:
    conn = get_db_connection()
    count = conn.execute('SELECT COUNT(*) as count FROM users').fetchone()['count']
    conn.close()
    return count
