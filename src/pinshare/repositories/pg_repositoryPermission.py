# pinshare/repositories/pg_repositoryPermission.py

import logging
from uuid import UUID
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from pinshare.db import FileAccessORM
from pinshare.db.base import get_session
from pinshare.exceptions import DatabaseError

logger = logging.getLogger(__name__)


class PermissionRepository:
    """
    Access set of a file record: the users, besides the owner, allowed to read it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def grant_access(self, file_id: UUID, user_ids: Iterable[UUID]) -> List[UUID]:
        """
        Adds users to the access set. Already present ids are skipped, so the
        set grows to the union without duplicates. Returns the resulting set.
        """
        wanted = set(user_ids)
        async with get_session(self._session_factory) as session:
            try:
                result = await session.execute(
                    select(FileAccessORM.user_id).where(FileAccessORM.file_id == file_id)
                )
                present = set(result.scalars().all())
                for user_id in wanted - present:
                    session.add(FileAccessORM(file_id=file_id, user_id=user_id))
                await session.commit()
            except IntegrityError:
                # A concurrent share inserted one of the rows first; retry row by row
                await session.rollback()
                for user_id in wanted - present:
                    try:
                        await session.merge(FileAccessORM(file_id=file_id, user_id=user_id))
                        await session.commit()
                    except IntegrityError:
                        await session.rollback()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to share file {file_id}: {e}")
                raise DatabaseError(f"Failed to share file: {e}") from e

        granted = present | wanted
        logger.info(f"File {file_id} access set now has {len(granted)} user(s)")
        return sorted(granted, key=str)
