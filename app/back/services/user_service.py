# app/back/services/user_service.py
import asyncio
import logging
import uuid
from typing import Dict, Optional

from app.back.core.security import hash_password, verify_password
from app.back.models.user import User

logger = logging.getLogger(__name__)


class UserRepository:
    """
    메모리 사용자 저장소. 프로세스 시작 시 관리자 계정 하나를 시드한다.
    """

    def __init__(self):
        self._users: Dict[str, User] = {}
        self._lock = asyncio.Lock()

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        for user in self._users.values():
            if user.username == username:
                return user
        return None

    async def create_user(self, username: str, password: str, is_admin: bool = False) -> User:
        async with self._lock:
            if await self.get_by_username(username):
                raise ValueError("User already exists")

            user = User(
                id=uuid.uuid4().hex,
                username=username,
                password_hash=hash_password(password),
                is_admin=is_admin,
            )
            self._users[user.id] = user
        return user

    async def seed_admin(self, username: str, password: str) -> User:
        existing = await self.get_by_username(username)
        if existing:
            return existing

        user = await self.create_user(username, password, is_admin=True)
        logger.info("Seeded admin user '%s'", username)
        return user

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        user = await self.get_by_username(username)
        if not user:
            return None

        if not verify_password(password, user.password_hash):
            return None

        return user
