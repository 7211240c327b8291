from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.users import User


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: UUID) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, user_id: UUID) -> User | None:
        stmt = select(User).where(User.id == user_id).with_for_update(key_share=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        username: str,
        email: str,
        is_admin: bool = False,
        user_id: UUID | None = None,
    ) -> User:
        user = User(
            id=user_id or uuid4(),
            username=username,
            email=email,
            is_admin=is_admin,
        )
        session.add(user)
        await session.flush()
        return user
