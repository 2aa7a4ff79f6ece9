from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # The browser client reads camelCase keys (ipfsHash, isPublic, uploadDate)
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class UploaderInfo(CamelModel):
    id: UUID
    username: str


class FileRecordCreate(BaseModel):
    name: str
    size: int
    original_size: Optional[int] = None
    compressed: bool = False
    mime_type: str
    ipfs_hash: str
    owner_id: UUID
    is_public: bool = False
    description: str = ""


class FileSummary(CamelModel):
    id: UUID
    name: str
    size: int
    original_size: Optional[int] = None
    compressed: bool = False
    type: str
    ipfs_hash: str
    upload_date: datetime
    is_public: bool
    description: str = ""


class FileMetadata(FileSummary):
    uploader: Optional[UploaderInfo] = None


class FileRecordInDB(FileMetadata):
    owner_id: UUID
    access_list: list[UUID] = Field(default_factory=list)


class ShareRequest(CamelModel):
    user_ids: list[UUID] = Field(min_length=1)


class UploadResponse(BaseModel):
    message: str = "File uploaded successfully"
    file: FileSummary


class FileListResponse(BaseModel):
    files: list[FileMetadata]


class MessageResponse(BaseModel):
    message: str
