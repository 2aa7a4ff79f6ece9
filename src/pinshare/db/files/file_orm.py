from uuid import UUID, uuid4
from typing import List, Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pinshare.db.base import Base, CreatedAt
from pinshare.db.files.file_access import FileAccessORM
from pinshare.models.file import FileRecordInDB, UploaderInfo

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from pinshare.db.users.users import UserORM


class FileRecordORM(Base):
    __tablename__ = "file_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Filled only when the pinned bytes are a compressed rendition
    original_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    compressed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    ipfs_hash: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    created_at: Mapped[CreatedAt]

    owner_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")

    owner: Mapped["UserORM"] = relationship("UserORM", back_populates="files_owned", lazy="joined")
    access_entries: Mapped[List["FileAccessORM"]] = relationship(
        "FileAccessORM", back_populates="file", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )

    __table_args__ = (
        Index("idx_file_records_public_created", "is_public", "created_at"),
    )

    @property
    def access_list(self) -> list[UUID]:
        return [entry.user_id for entry in self.access_entries]

    def to_pydantic(self) -> FileRecordInDB:
        uploader = UploaderInfo(id=self.owner.id, username=self.owner.username) if self.owner else None
        return FileRecordInDB(
            id=self.id,
            name=self.name,
            size=self.size,
            original_size=self.original_size,
            compressed=self.compressed,
            type=self.mime_type,
            ipfs_hash=self.ipfs_hash,
            upload_date=self.created_at,
            owner_id=self.owner_id,
            uploader=uploader,
            is_public=self.is_public,
            description=self.description,
            access_list=self.access_list,
        )
