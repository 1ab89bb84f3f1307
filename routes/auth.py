from fastapi import APIRouter, HTTPException, Depends, Cookie
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional, Dict, Any
from config import SESSION_HOURS, COOKIE_SECURE
from db.users import create_user, authenticate_user, create_session, delete_session
from dependencies import get_current_user, get_optional_user
from logger import logger

router = APIRouter(prefix="/api/auth", tags=["auth"])

class UserCreate(BaseModel):
    username: str
    password: str
    email: Optional[str] = None

class UserLogin(BaseModel):
    username: str
    password: str

def _public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": user['id'],
        "username": user['username'],
        "email": user['email'],
        "role": user['role'],
        "must_change_password": bool(user.get('must_change_password', 0))
    }

@router.post("/register")
async def register(user_data: UserCreate) -> Dict[str, Any]:
    """Register a new user account"""
    if len(user_data.username) < 3:
        raise HTTPException(status_code=400, detail="Username must be at least 3 characters")
    if len(user_data.password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")

    # New accounts are never admins
    user_id = create_user(user_data.username, user_data.password, user_data.email, role="user")
    if not user_id:
        raise HTTPException(status_code=409, detail="Username already exists")

    logger.info(f"Registered user '{user_data.username}' (id={user_id})")
    return {"message": "User created successfully", "user_id": user_id}

@router.post("/login")
async def login(user_data: UserLogin) -> JSONResponse:
    """Login and create session"""
    user = authenticate_user(user_data.username, user_data.password)
    if not user:
        logger.warning(f"Failed login for '{user_data.username}'")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = create_session(user['id'], expires_hours=SESSION_HOURS)

    response = JSONResponse({"message": "Login successful", "user": _public_user(user)})
    response.set_cookie(
        key="session_token",
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        max_age=SESSION_HOURS * 3600,
        samesite="lax"
    )
    return response

@router.post("/logout")
async def logout(token: Optional[str] = Cookie(None, alias="session_token")) -> JSONResponse:
    """Logout and invalidate session"""
    if token:
        delete_session(token)

    response = JSONResponse({"message": "Logout successful"})
    response.delete_cookie(key="session_token")
    return response

@router.get("/me")
async def get_me(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return _public_user(current_user)

@router.get("/check")
async def check_auth(current_user: Optional[Dict[str, Any]] = Depends(get_optional_user)) -> Dict[str, Any]:
    """Check if user is authenticated (returns user or null)"""
    if current_user:
        return {"authenticated": True, "user": _public_user(current_user)}
    return {"authenticated": False, "user": None}
