# pinshare/repositories/pg_repositoryUser.py

import logging
from uuid import UUID
from typing import Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession
from passlib.context import CryptContext

from pinshare.db import UserORM, UserFileORM
from pinshare.db.base import get_session
from pinshare.exceptions import DatabaseError, DuplicateAccountError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    """Salted one-way hash of a plain password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class UserRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_user(self, username: str, email: str, plain_password: str) -> UserORM:
        user = UserORM(
            username=username,
            email=email.strip().lower(),
            hashed_password=get_password_hash(plain_password),
        )
        async with get_session(self._session_factory) as session:
            try:
                existing = await session.execute(
                    select(UserORM.id).where(or_(UserORM.email == user.email, UserORM.username == username))
                )
                if existing.first() is not None:
                    raise DuplicateAccountError("User with this email or username already exists")
                session.add(user)
                await session.commit()
                await session.refresh(user)
                logger.info(f"Created user {user.id} ({username})")
                return user
            except IntegrityError as e:
                await session.rollback()
                # Lost a race against a concurrent registration
                raise DuplicateAccountError("User with this email or username already exists") from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to create user: {e}") from e

    async def get_by_id(self, user_id: UUID) -> Optional[UserORM]:
        async with get_session(self._session_factory) as session:
            result = await session.execute(select(UserORM).where(UserORM.id == user_id))
            return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[UserORM]:
        async with get_session(self._session_factory) as session:
            result = await session.execute(select(UserORM).where(UserORM.email == email.strip().lower()))
            return result.scalar_one_or_none()

    async def authenticate(self, email: str, plain_password: str) -> Optional[UserORM]:
        """Returns the user only when both the email and the password match."""
        user = await self.get_by_email(email)
        if user is None or not verify_password(plain_password, user.hashed_password):
            return None
        return user

    async def find_existing_ids(self, user_ids: Iterable[UUID]) -> set[UUID]:
        ids = set(user_ids)
        if not ids:
            return set()
        async with get_session(self._session_factory) as session:
            result = await session.execute(select(UserORM.id).where(UserORM.id.in_(ids)))
            return set(result.scalars().all())

    async def append_file(self, user_id: UUID, file_id: UUID) -> None:
        """Adds a file reference to the user's own file set. Idempotent."""
        async with get_session(self._session_factory) as session:
            try:
                await session.merge(UserFileORM(user_id=user_id, file_id=file_id))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to link file {file_id} to user {user_id}: {e}") from e
