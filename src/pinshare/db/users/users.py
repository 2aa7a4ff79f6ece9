from __future__ import annotations
from uuid import UUID, uuid4
from typing import List

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..base import Base, CreatedAt
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from ..files.file_orm import FileRecordORM
    from .user_files import UserFileORM


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[CreatedAt]

    # Ownership itself lives on file_records.owner_id; this is the user's
    # own list of file references, appended after each successful upload.
    file_links: Mapped[List["UserFileORM"]] = relationship(
        "UserFileORM", back_populates="user", cascade="all, delete-orphan", lazy="selectin"
    )
    files_owned: Mapped[List["FileRecordORM"]] = relationship("FileRecordORM", back_populates="owner")

    @property
    def file_ids(self) -> list[UUID]:
        return [link.file_id for link in self.file_links]
