from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel
from typing import Optional, Dict, Any, List
from config import CHARACTER_PAGE_SIZE
from dependencies import get_current_user, get_admin_user
from db.characters import (
    list_characters, get_character, get_character_media,
    create_character as db_create_character,
    update_character as db_update_character,
    delete_character as db_delete_character,
    get_roles, get_role,
    create_role as db_create_role,
    delete_role as db_delete_role,
)
from logger import logger

router = APIRouter(prefix="/api/characters", tags=["characters"])

ROLE_LIMIT_MAX = 100


class CharacterCreate(BaseModel):
    name: str
    details: Optional[str] = None
    wiki_url: Optional[str] = None


class CharacterUpdate(BaseModel):
    name: Optional[str] = None
    details: Optional[str] = None
    wiki_url: Optional[str] = None


class RoleCreate(BaseModel):
    name: str


@router.get("")
async def get_character_list(
    request: Request,
    page: int = 1,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    """Character listing. Filters: name, media, tag (role), appearances_gt / appearances_lt."""
    return list_characters(request.query_params, page=page, page_size=CHARACTER_PAGE_SIZE, sort=sort, order=order)


# --- Roles ---

@router.get("/roles")
async def get_role_list(
    name: Optional[str] = None,
    limit: int = 20,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> List[Dict[str, Any]]:
    return get_roles(name=name, limit=max(1, min(limit, ROLE_LIMIT_MAX)))


@router.post("/roles", status_code=201)
async def create_role(
    data: RoleCreate,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Role name is required")
    role_id = db_create_role(name, current_user['id'])
    if role_id is None:
        raise HTTPException(status_code=409, detail="Role already exists")
    return {"id": role_id, "name": name}


@router.delete("/roles/{role_id}")
async def delete_role(
    role_id: int,
    admin_user: Dict[str, Any] = Depends(get_admin_user)
) -> Dict[str, Any]:
    if get_role(role_id) is None:
        raise HTTPException(status_code=404, detail="Role not found")
    if not db_delete_role(role_id):
        raise HTTPException(status_code=409, detail="Role is still assigned to characters")
    logger.info(f"Admin {admin_user['username']} deleted role {role_id}")
    return {"message": "Role deleted"}


# --- Characters ---

@router.get("/{character_id}")
async def get_character_details(
    character_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    character = get_character(character_id)
    if character is None:
        raise HTTPException(status_code=404, detail="Character not found")
    return character


@router.get("/{character_id}/media")
async def get_character_appearances(
    character_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> List[Dict[str, Any]]:
    if get_character(character_id) is None:
        raise HTTPException(status_code=404, detail="Character not found")
    return get_character_media(character_id)


@router.post("", status_code=201)
async def create_character(
    data: CharacterCreate,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    character_id = db_create_character(name, current_user['id'], data.details, data.wiki_url)
    return get_character(character_id)


@router.patch("/{character_id}")
async def update_character(
    character_id: int,
    data: CharacterUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    if get_character(character_id) is None:
        raise HTTPException(status_code=404, detail="Character not found")

    changes = data.model_dump(exclude_unset=True)
    if 'name' in changes:
        if not changes['name'] or not changes['name'].strip():
            raise HTTPException(status_code=400, detail="Name is required")
        changes['name'] = changes['name'].strip()

    if changes:
        db_update_character(character_id, **changes)
    return get_character(character_id)


@router.delete("/{character_id}")
async def delete_character(
    character_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    character = get_character(character_id)
    if character is None:
        raise HTTPException(status_code=404, detail="Character not found")
    creator = character['created_by']
    if current_user['role'] != 'admin' and (creator is None or creator['id'] != current_user['id']):
        raise HTTPException(status_code=403, detail="Not authorized to delete this character")

    db_delete_character(character_id)
    return {"message": "Character deleted"}
