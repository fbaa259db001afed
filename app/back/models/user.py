# app/back/models/user.py
from pydantic import BaseModel

from app.back.models.base import CamelModel


class User(BaseModel):
    id: str
    username: str
    password_hash: str
    is_admin: bool = False


class UserPublic(BaseModel):
    id: str
    username: str


class UserLogin(BaseModel):
    username: str
    password: str


class LoginResponse(CamelModel):
    user: UserPublic
    token: str
    is_admin: bool
