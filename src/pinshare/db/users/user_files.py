from uuid import UUID

from sqlalchemy import ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..base import Base, CreatedAt

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .users import UserORM


class UserFileORM(Base):
    __tablename__ = "user_files"

    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    file_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("file_records.id", ondelete="CASCADE"), primary_key=True)
    created_at: Mapped[CreatedAt]

    __table_args__ = (UniqueConstraint("user_id", "file_id", name="uq_user_files"),)

    user: Mapped["UserORM"] = relationship(back_populates="file_links")
