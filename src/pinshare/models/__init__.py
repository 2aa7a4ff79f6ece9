from .upload import StagedUpload, CompressionOutcome
from .file import (
    UploaderInfo, FileRecordCreate, FileSummary, FileMetadata, FileRecordInDB,
    ShareRequest, UploadResponse, FileListResponse, MessageResponse,
)
from .user import UserCreate, UserLogin, UserSummary, UserProfile, AuthResponse, ProfileResponse

__all__ = [
    "StagedUpload", "CompressionOutcome",
    "UploaderInfo", "FileRecordCreate", "FileSummary", "FileMetadata", "FileRecordInDB",
    "ShareRequest", "UploadResponse", "FileListResponse", "MessageResponse",
    "UserCreate", "UserLogin", "UserSummary", "UserProfile", "AuthResponse", "ProfileResponse",
]
