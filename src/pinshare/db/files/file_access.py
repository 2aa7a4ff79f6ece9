from uuid import UUID

from sqlalchemy import ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pinshare.db.base import Base, CreatedAt

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .file_orm import FileRecordORM


class FileAccessORM(Base):
    """One row per user granted access to a file. The owner never appears here."""

    __tablename__ = "file_access"

    file_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("file_records.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at: Mapped[CreatedAt]

    __table_args__ = (UniqueConstraint("file_id", "user_id", name="uq_file_access"),)

    file: Mapped["FileRecordORM"] = relationship(back_populates="access_entries")
