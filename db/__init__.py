from .connection import get_db_connection, init_db
from .users import (
    create_user, authenticate_user, create_session, validate_session,
    delete_session, get_user, count_users
)
from .media import (
    list_media, get_media, get_media_types, get_media_statuses, create_media,
    update_media, delete_media, add_media_tag, remove_media_tag, MEDIA_FILTERS
)
from .characters import (
    list_characters, get_character, create_character, update_character,
    delete_character, get_roles, get_role, create_role, delete_role,
    get_character_media, get_media_characters, link_character, unlink_character,
    CHARACTER_FILTERS
)
from .library import (
    list_library, get_entry, get_user_statuses, add_entry, update_entry,
    delete_entry, autocomplete, LIBRARY_FILTERS
)
