# app/back/core/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.back.core.config import Settings
from app.back.core.security import decode_access_token
from app.back.models.user import User
from app.back.services.catalog_service import CatalogRepository
from app.back.services.lifecycle_service import LifecycleService
from app.back.services.user_service import UserRepository

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_catalog(request: Request) -> CatalogRepository:
    return request.app.state.catalog


def get_users(request: Request) -> UserRepository:
    return request.app.state.users


def get_lifecycle(request: Request) -> LifecycleService:
    return request.app.state.lifecycle


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
    users: UserRepository = Depends(get_users),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(settings, credentials.credentials)
    user = await users.get_by_id(payload["sub"]) if payload else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
