# pinshare/db/__init__.py

from .base import Base

from .users.users import UserORM
from .users.user_files import UserFileORM

# tables that depend on users
from .files.file_access import FileAccessORM
from .files.file_orm import FileRecordORM


__all__ = [
    "Base",
    "UserORM",
    "UserFileORM",
    "FileAccessORM",
    "FileRecordORM",
]
