# app/back/routers/api_auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.back.core.config import Settings
from app.back.core.deps import get_settings, get_users
from app.back.core.security import create_access_token
from app.back.models.user import LoginResponse, UserLogin, UserPublic
from app.back.services.user_service import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth-api"])


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: UserLogin,
    users: UserRepository = Depends(get_users),
    settings: Settings = Depends(get_settings),
):
    if not payload.username or not payload.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    user = await users.authenticate(payload.username, payload.password)
    if not user:
        logger.info("Failed login attempt for '%s'", payload.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token(settings, user.id, user.username, user.is_admin)
    return LoginResponse(
        user=UserPublic(id=user.id, username=user.username),
        token=token,
        is_admin=user.is_admin,
    )
