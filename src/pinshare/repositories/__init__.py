from .pinata_repository import PinataRepository
from .pg_repositoryFile import FileRepository
from .pg_repositoryUser import UserRepository
from .pg_repositoryPermission import PermissionRepository

__all__ = [
    "PinataRepository",
    "FileRepository",
    "UserRepository",
    "PermissionRepository",
]
