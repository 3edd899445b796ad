"""User listing and creation: a thin passthrough to the users table."""
from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payments_service.shared.errors import StoreUnavailable
from payments_service.shared.models import User

logger = structlog.get_logger(__name__)


class UserService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_users(self) -> list[User]:
        """Return every user ordered by id; an empty table yields ``[]``."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(User).order_by(User.id))
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable(f"listing users failed: {exc}") from exc

    async def create_user(self, name: str, email: str) -> User:
        user = User(name=name, email=email)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(user)
                    await session.flush()
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailable(f"creating user failed: {exc}") from exc

        logger.info("user_created", user_id=user.id)
        return user
