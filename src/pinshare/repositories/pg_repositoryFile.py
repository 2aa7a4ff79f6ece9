import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, or_, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from pinshare.db import FileAccessORM, FileRecordORM, UserFileORM
from pinshare.db.base import get_session
from pinshare.exceptions import DatabaseError, DuplicateResourceError
from pinshare.models.file import FileRecordCreate, FileRecordInDB

logger = logging.getLogger(__name__)


class FileRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_connection(self):
        """Runs a trivial query to prove the database is reachable."""
        logger.debug("Checking database connection...")
        async with get_session(self._session_factory) as session:
            try:
                await session.execute(text("SELECT 1"))
                logger.debug("Database connection successful.")
            except SQLAlchemyError as e:
                logger.error(f"Database connection failed: {e}")
                raise DatabaseError("Failed to connect to the database.") from e

    async def create(self, record: FileRecordCreate) -> FileRecordInDB:
        """
        Inserts a new record. The content address is unique: a second record
        for the same address raises DuplicateResourceError and nothing is written.
        """
        orm = FileRecordORM(**record.model_dump())
        async with get_session(self._session_factory) as session:
            try:
                session.add(orm)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                existing = await session.execute(
                    select(FileRecordORM.id).where(FileRecordORM.ipfs_hash == record.ipfs_hash)
                )
                if existing.first() is not None:
                    raise DuplicateResourceError(f"A file with content address {record.ipfs_hash} already exists") from e
                raise DatabaseError(f"Failed to save file metadata: {e}") from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to save file metadata: {e}") from e

            res = await session.execute(select(FileRecordORM).where(FileRecordORM.id == orm.id))
            return res.scalar_one().to_pydantic()

    async def get_by_hash(self, ipfs_hash: str) -> Optional[FileRecordInDB]:
        async with get_session(self._session_factory) as session:
            res = await session.execute(select(FileRecordORM).where(FileRecordORM.ipfs_hash == ipfs_hash))
            orm = res.scalar_one_or_none()
            return orm.to_pydantic() if orm else None

    async def list_for_user(self, user_id: UUID) -> List[FileRecordInDB]:
        """Records the user owns or has been granted access to, newest first."""
        shared = select(FileAccessORM.file_id).where(FileAccessORM.user_id == user_id)
        stmt = (
            select(FileRecordORM)
            .where(or_(FileRecordORM.owner_id == user_id, FileRecordORM.id.in_(shared)))
            .order_by(FileRecordORM.created_at.desc())
        )
        async with get_session(self._session_factory) as session:
            rows = await session.execute(stmt)
            return [o.to_pydantic() for o in rows.scalars().all()]

    async def list_public(self, limit: int = 50) -> List[FileRecordInDB]:
        stmt = (
            select(FileRecordORM)
            .where(FileRecordORM.is_public.is_(True))
            .order_by(FileRecordORM.created_at.desc())
            .limit(limit)
        )
        async with get_session(self._session_factory) as session:
            rows = await session.execute(stmt)
            return [o.to_pydantic() for o in rows.scalars().all()]

    async def list_created_before(self, cutoff: datetime) -> List[FileRecordInDB]:
        stmt = select(FileRecordORM).where(FileRecordORM.created_at < cutoff).order_by(FileRecordORM.created_at)
        async with get_session(self._session_factory) as session:
            rows = await session.execute(stmt)
            return [o.to_pydantic() for o in rows.scalars().all()]

    async def delete(self, file_id: UUID) -> bool:
        """
        Removes a record together with its access set and the owner's file-set
        entry in one transaction. Returns False if it was already gone.
        """
        async with get_session(self._session_factory) as session:
            try:
                await session.execute(delete(FileAccessORM).where(FileAccessORM.file_id == file_id))
                await session.execute(delete(UserFileORM).where(UserFileORM.file_id == file_id))
                res = await session.execute(delete(FileRecordORM).where(FileRecordORM.id == file_id))
                await session.commit()
                return res.rowcount > 0
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to delete file record {file_id}: {e}")
                raise DatabaseError(f"Failed to delete file record: {e}") from e
