from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel
from typing import Optional, Dict, Any, List
from config import MEDIA_PAGE_SIZE
from dependencies import get_current_user
from db.media import (
    list_media, get_media, get_media_types, get_media_statuses, lookup_exists,
    create_media as db_create_media,
    update_media as db_update_media,
    delete_media as db_delete_media,
    add_media_tag, remove_media_tag,
)
from logger import logger

router = APIRouter(prefix="/api/media", tags=["media"])


# --- Pydantic Models ---

class MediaCreate(BaseModel):
    title: str
    type_id: int
    status_id: int
    release_year: Optional[int] = None
    description: Optional[str] = None


class MediaUpdate(BaseModel):
    title: Optional[str] = None
    type_id: Optional[int] = None
    status_id: Optional[int] = None
    release_year: Optional[int] = None
    description: Optional[str] = None


class TagAdd(BaseModel):
    name: str


def _check_lookups(type_id: Optional[int], status_id: Optional[int]) -> None:
    if type_id is not None and not lookup_exists('media_types', type_id):
        raise HTTPException(status_code=400, detail="Unknown media type")
    if status_id is not None and not lookup_exists('media_status_types', status_id):
        raise HTTPException(status_code=400, detail="Unknown media status")


def _get_owned_media(media_id: int, current_user: Dict[str, Any]) -> Dict[str, Any]:
    media = get_media(media_id)
    if media is None:
        raise HTTPException(status_code=404, detail="Media not found")
    creator = media['created_by']
    if current_user['role'] != 'admin' and (creator is None or creator['id'] != current_user['id']):
        raise HTTPException(status_code=403, detail="Not authorized to modify this media")
    return media


# --- Endpoints ---

@router.get("")
async def get_media_list(
    request: Request,
    page: int = 1,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    """Catalog listing. Filters come from the search query params (title, exclude_tag, year_gt, ...)."""
    return list_media(request.query_params, page=page, page_size=MEDIA_PAGE_SIZE, sort=sort, order=order)


@router.get("/types")
async def get_types(current_user: Dict[str, Any] = Depends(get_current_user)) -> List[Dict[str, Any]]:
    return get_media_types()


@router.get("/statuses")
async def get_statuses(current_user: Dict[str, Any] = Depends(get_current_user)) -> List[Dict[str, Any]]:
    return get_media_statuses()


@router.get("/{media_id}")
async def get_media_details(
    media_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    media = get_media(media_id)
    if media is None:
        raise HTTPException(status_code=404, detail="Media not found")
    return media


@router.post("", status_code=201)
async def create_media(
    data: MediaCreate,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    title = data.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    _check_lookups(data.type_id, data.status_id)

    media_id = db_create_media(
        title=title,
        type_id=data.type_id,
        status_id=data.status_id,
        created_by=current_user['id'],
        release_year=data.release_year,
        description=data.description,
    )
    if media_id is None:
        raise HTTPException(status_code=400, detail="Failed to create media")

    logger.info(f"User {current_user['username']} created media {media_id} '{title}'")
    return get_media(media_id)


@router.patch("/{media_id}")
async def update_media(
    media_id: int,
    data: MediaUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    _get_owned_media(media_id, current_user)

    changes = data.model_dump(exclude_unset=True)
    if 'title' in changes:
        if not changes['title'] or not changes['title'].strip():
            raise HTTPException(status_code=400, detail="Title is required")
        changes['title'] = changes['title'].strip()
    if changes.get('type_id') is None:
        changes.pop('type_id', None)
    if changes.get('status_id') is None:
        changes.pop('status_id', None)
    _check_lookups(changes.get('type_id'), changes.get('status_id'))

    if changes and not db_update_media(media_id, **changes):
        raise HTTPException(status_code=400, detail="Failed to update media")
    return get_media(media_id)


@router.delete("/{media_id}")
async def delete_media(
    media_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    _get_owned_media(media_id, current_user)
    db_delete_media(media_id)
    logger.info(f"User {current_user['username']} deleted media {media_id}")
    return {"message": "Media deleted"}


@router.post("/{media_id}/tags")
async def add_tag(
    media_id: int,
    data: TagAdd,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Tag name is required")
    if ',' in name:
        raise HTTPException(status_code=400, detail="Tag names cannot contain commas")
    if get_media(media_id) is None:
        raise HTTPException(status_code=404, detail="Media not found")

    if not add_media_tag(media_id, name):
        raise HTTPException(status_code=409, detail="Tag already on this media")
    return get_media(media_id)


@router.delete("/{media_id}/tags/{name}")
async def remove_tag(
    media_id: int,
    name: str,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    if not remove_media_tag(media_id, name):
        raise HTTPException(status_code=404, detail="Tag not found on this media")
    return get_media(media_id)
