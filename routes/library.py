from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel
from typing import Optional, Dict, Any, List
from config import LIBRARY_PAGE_SIZE
from dependencies import get_current_user
from db.media import get_media, lookup_exists
from db.library import (
    list_library, get_entry, get_user_statuses, autocomplete,
    add_entry as db_add_entry,
    update_entry as db_update_entry,
    delete_entry as db_delete_entry,
)

router = APIRouter(prefix="/api/library", tags=["library"])

MIN_SCORE = 0
MAX_SCORE = 10


class EntryCreate(BaseModel):
    media_id: int
    current_progress: Optional[str] = None
    status_id: Optional[int] = None
    score: Optional[int] = None
    review: Optional[str] = None


class EntryUpdate(BaseModel):
    current_progress: Optional[str] = None
    status_id: Optional[int] = None
    score: Optional[int] = None
    review: Optional[str] = None


def _validate(score: Optional[int], status_id: Optional[int]) -> None:
    if score is not None and not (MIN_SCORE <= score <= MAX_SCORE):
        raise HTTPException(status_code=400, detail=f"Score must be between {MIN_SCORE} and {MAX_SCORE}")
    if status_id is not None and not lookup_exists('user_media_status_types', status_id):
        raise HTTPException(status_code=400, detail="Unknown library status")


@router.get("")
async def get_library(
    request: Request,
    page: int = 1,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    """The current user's library. Takes the media filters plus user_status and user_score."""
    return list_library(
        current_user['id'], request.query_params,
        page=page, page_size=LIBRARY_PAGE_SIZE, sort=sort, order=order
    )


@router.get("/statuses")
async def get_statuses(current_user: Dict[str, Any] = Depends(get_current_user)) -> List[Dict[str, Any]]:
    return get_user_statuses()


@router.get("/autocomplete")
async def get_suggestions(
    key: str,
    q: str = "",
    limit: int = 5,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> List[Dict[str, Any]]:
    """Value suggestions for a filter key, drawn from the user's own library"""
    return autocomplete(current_user['id'], key.lower(), q, limit)


@router.post("", status_code=201)
async def add_to_library(
    data: EntryCreate,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    if get_media(data.media_id) is None:
        raise HTTPException(status_code=404, detail="Media not found")
    _validate(data.score, data.status_id)

    entry_id = db_add_entry(
        current_user['id'], data.media_id,
        current_progress=data.current_progress,
        status_id=data.status_id,
        score=data.score,
        review=data.review,
    )
    if entry_id is None:
        raise HTTPException(status_code=409, detail="Media already in library")
    return get_entry(current_user['id'], entry_id)


@router.get("/{entry_id}")
async def get_library_entry(
    entry_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    entry = get_entry(current_user['id'], entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Library entry not found")
    return entry


@router.patch("/{entry_id}")
async def update_library_entry(
    entry_id: int,
    data: EntryUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    if get_entry(current_user['id'], entry_id) is None:
        raise HTTPException(status_code=404, detail="Library entry not found")

    changes = data.model_dump(exclude_unset=True)
    _validate(changes.get('score'), changes.get('status_id') or None)

    db_update_entry(current_user['id'], entry_id, changes)
    return get_entry(current_user['id'], entry_id)


@router.delete("/{entry_id}")
async def delete_library_entry(
    entry_id: int,
    current_user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    if not db_delete_entry(current_user['id'], entry_id):
        raise HTTPException(status_code=404, detail="Library entry not found")
    return {"message": "Removed from library"}
