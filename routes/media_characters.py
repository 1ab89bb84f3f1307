from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import Dict, Any, List
from dependencies import get_current_user
from db.media import get_media
from db.characters import (
    get_character, get_role, get_media_characters, link_character, unlink_character,
)

router = APIRouter(prefix="/api/media/{media_id}/characters", tags=["media-characters"])


class CharacterLink(BaseModel):
    character_id: int
    role_id: int


def _require_media(media_id: int) -> None:
    if get_media(media_id) is None:
        raise HTTPException(status_code=404, detail="Media not found")


@router.get("")
async def list_media_characters(
    media_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> List[Dict[str, Any]]:
    _require_media(media_id)
    return get_media_characters(media_id)


@router.post("", status_code=201)
async def add_media_character(
    media_id: int,
    data: CharacterLink,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    _require_media(media_id)
    if get_character(data.character_id) is None:
        raise HTTPException(status_code=404, detail="Character not found")
    if get_role(data.role_id) is None:
        raise HTTPException(status_code=400, detail="Unknown role")

    link_id = link_character(media_id, data.character_id, data.role_id)
    if link_id is None:
        raise HTTPException(status_code=409, detail="Character already linked to this media")
    return {"id": link_id, "media_id": media_id, "character_id": data.character_id, "role_id": data.role_id}


@router.delete("/{character_id}")
async def remove_media_character(
    media_id: int,
    character_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    if not unlink_character(media_id, character_id):
        raise HTTPException(status_code=404, detail="Character not linked to this media")
    return {"message": "Character removed from media"}
