import pytest
import sqlite3
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ["TESTING"] = "1"
os.environ.setdefault("MT_LOG_FILE", "")

_test_conn = None
_test_wrapper = None

class NonClosingConnection:
    def __init__(self, conn):
        self._conn = conn

    def close(self):
        pass

    def __getattr__(self, name):
        return getattr(self._conn, name)

def get_test_connection():
    global _test_conn, _test_wrapper
    if _test_conn is None:
        _test_conn = sqlite3.connect(":memory:", check_same_thread=False, timeout=30)
        _test_conn.row_factory = sqlite3.Row
        _test_conn.execute("PRAGMA foreign_keys=ON")
        _test_wrapper = NonClosingConnection(_test_conn)
    return _test_wrapper

import db.connection
db.connection.get_db_connection = get_test_connection

import db.users
db.users.get_db_connection = get_test_connection

import db.media
db.media.get_db_connection = get_test_connection

import db.characters
db.characters.get_db_connection = get_test_connection

import db.library
db.library.get_db_connection = get_test_connection

from db.connection import init_db
init_db()

@pytest.fixture(scope="function")
def test_db():
    global _test_conn
    _test_conn.execute("DELETE FROM sessions")
    _test_conn.execute("DELETE FROM user_media")
    _test_conn.execute("DELETE FROM media_characters")
    _test_conn.execute("DELETE FROM media_tags")
    _test_conn.execute("DELETE FROM tags")
    _test_conn.execute("DELETE FROM character_roles")
    _test_conn.execute("DELETE FROM characters")
    _test_conn.execute("DELETE FROM media")
    _test_conn.execute("DELETE FROM users")
    _test_conn.commit()
    yield _test_conn

@pytest.fixture(scope="function")
def test_client(test_db):
    from fastapi.testclient import TestClient
    from server import app

    client = TestClient(app)
    yield client

@pytest.fixture(scope="function")
def test_user(test_db):
    from db.users import create_user

    user_id = create_user("testuser", "password123", "test@example.com", "user")
    return {
        "id": user_id,
        "username": "testuser",
        "password": "password123",
        "email": "test@example.com",
        "role": "user"
    }

@pytest.fixture(scope="function")
def admin_user(test_db):
    from db.users import create_user

    user_id = create_user("adminuser", "admin123", "admin@example.com", "admin")
    return {
        "id": user_id,
        "username": "adminuser",
        "password": "admin123",
        "email": "admin@example.com",
        "role": "admin"
    }

@pytest.fixture
def login(test_client):
    """Log the test client in as the given user"""
    def _login(user):
        response = test_client.post("/api/auth/login", json={
            "username": user["username"],
            "password": user["password"]
        })
        assert response.status_code == 200
        return response
    return _login

def lookup_id(conn, table, name):
    return conn.execute(f"SELECT id FROM {table} WHERE name = ?", (name,)).fetchone()["id"]

@pytest.fixture(scope="function")
def catalog(test_db, test_user, admin_user):
    """A small catalog with tags, characters and two users' libraries.

    Media (type, status, year, tags):
      Naruto            anime  completed 2002 action, shounen
      Naruto Shippuden  anime  completed 2007 action
      One Piece         anime  ongoing   1999 adventure, shounen
      Dune              novel  completed 1965 sci-fi
      Attack on Titan   manga  completed 2009 dark
      Frieren           manga  ongoing   2020
      100% Orange Juice video_game ongoing (no year)
    """
    from db.media import create_media, add_media_tag
    from db.characters import create_character, create_role, link_character
    from db.library import add_entry

    def type_id(name):
        return lookup_id(test_db, "media_types", name)

    def status_id(name):
        return lookup_id(test_db, "media_status_types", name)

    def user_status_id(name):
        return lookup_id(test_db, "user_media_status_types", name)

    admin_id = admin_user["id"]
    rows = [
        ("Naruto", "anime", "completed", 2002, ["action", "shounen"]),
        ("Naruto Shippuden", "anime", "completed", 2007, ["action"]),
        ("One Piece", "anime", "ongoing", 1999, ["adventure", "shounen"]),
        ("Dune", "novel", "completed", 1965, ["sci-fi"]),
        ("Attack on Titan", "manga", "completed", 2009, ["dark"]),
        ("Frieren", "manga", "ongoing", 2020, []),
        ("100% Orange Juice", "video_game", "ongoing", None, []),
    ]
    media = {}
    for title, media_type, status, year, tags in rows:
        media_id = create_media(title, type_id(media_type), status_id(status), admin_id, release_year=year)
        for tag in tags:
            add_media_tag(media_id, tag)
        media[title] = media_id

    roles = {name: create_role(name, admin_id) for name in ("protagonist", "villain", "supporting")}

    characters = {}
    for name in ("Naruto Uzumaki", "Orochimaru", "Monkey D. Luffy", "Paul Atreides", "Stray Cat"):
        characters[name] = create_character(name, admin_id)

    link_character(media["Naruto"], characters["Naruto Uzumaki"], roles["protagonist"])
    link_character(media["Naruto Shippuden"], characters["Naruto Uzumaki"], roles["protagonist"])
    link_character(media["Naruto"], characters["Orochimaru"], roles["villain"])
    link_character(media["Naruto Shippuden"], characters["Orochimaru"], roles["villain"])
    link_character(media["One Piece"], characters["Monkey D. Luffy"], roles["protagonist"])
    link_character(media["Dune"], characters["Paul Atreides"], roles["protagonist"])

    user_id = test_user["id"]
    library = {
        "Naruto": add_entry(user_id, media["Naruto"], "ep 220", user_status_id("completed"), score=8),
        "One Piece": add_entry(user_id, media["One Piece"], "ep 1100", user_status_id("current"), score=9),
        "Dune": add_entry(user_id, media["Dune"], status_id=user_status_id("planning")),
        "Frieren": add_entry(user_id, media["Frieren"]),
    }
    add_entry(admin_id, media["Naruto"], status_id=user_status_id("completed"), score=10)

    return {
        "media": media,
        "roles": roles,
        "characters": characters,
        "library": library,
        "user": test_user,
        "admin": admin_user,
    }
