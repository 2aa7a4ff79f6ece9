import logging
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncEngine

from pinshare.config import ServiceConfig
from pinshare.db import Base, UserORM
from pinshare.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    DatabaseError,
    FileRecordNotFoundError,
    InvalidInputError,
    PinServiceError,
    UserNotFoundError,
)
from pinshare.models import FileRecordInDB, StagedUpload, UserCreate, UserProfile
from pinshare.pipeline import ContentCompressor, RetentionSweeper, SweepReport, UploadOrchestrator
from pinshare.repositories import FileRepository, PermissionRepository, PinataRepository, UserRepository

logger = logging.getLogger(__name__)


class FileService:
    """
    Single entry point for the business logic, shared by the HTTP layer and the CLI.
    """

    def __init__(
        self,
        config: ServiceConfig,
        engine: AsyncEngine,
        file_repo: FileRepository,
        user_repo: UserRepository,
        permission_repo: PermissionRepository,
        pin_repo: PinataRepository,
    ):
        self.config = config
        self._engine = engine
        self.file_repo = file_repo
        self.user_repo = user_repo
        self.permission_repo = permission_repo
        self.pin = pin_repo
        self.orchestrator = UploadOrchestrator(
            config.upload,
            ContentCompressor(config.upload),
            pin_repo,
            file_repo,
            user_repo,
        )
        self.sweeper = RetentionSweeper(file_repo, pin_repo, config.retention)

    async def init_schema(self) -> None:
        """Creates missing tables. Stands in for migrations on a fresh database."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.config.upload.staging_dir.mkdir(parents=True, exist_ok=True)

    async def check_connections(self) -> dict[str, str]:
        """
        Reports the reachability of the database and the pinning gateway.
        """
        statuses = {}

        try:
            await self.file_repo.check_connection()
            statuses["database"] = "ok"
        except DatabaseError as e:
            statuses["database"] = f"failed: {e}"

        if not self.pin.is_configured:
            statuses["pinata"] = "not configured"
        else:
            try:
                await self.pin.check_connection()
                statuses["pinata"] = "ok"
            except PinServiceError as e:
                statuses["pinata"] = f"failed: {e}"

        return statuses

    async def aclose(self) -> None:
        await self.pin.aclose()
        await self._engine.dispose()

######################## USERS

    async def register_user(self, data: UserCreate) -> UserORM:
        return await self.user_repo.create_user(data.username, data.email, data.password)

    async def authenticate(self, email: str, password: str) -> UserORM:
        user = await self.user_repo.authenticate(email, password)
        if user is None:
            raise AuthenticationError("Invalid credentials")
        return user

    async def get_user_by_id(self, user_id: UUID) -> Optional[UserORM]:
        return await self.user_repo.get_by_id(user_id)

    async def get_profile(self, user_id: UUID) -> UserProfile:
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        return UserProfile.model_validate(user)

######################## FILES

    async def upload_file(
        self, staged: StagedUpload, owner_id: UUID, is_public: bool = False, description: str = ""
    ) -> FileRecordInDB:
        return await self.orchestrator.handle_upload(staged, owner_id, is_public, description)

    @staticmethod
    def has_access(record: FileRecordInDB, user_id: UUID) -> bool:
        return record.is_public or record.owner_id == user_id or user_id in record.access_list

    async def _get_record(self, ipfs_hash: str) -> FileRecordInDB:
        record = await self.file_repo.get_by_hash(ipfs_hash)
        if record is None:
            raise FileRecordNotFoundError("File not found")
        return record

    async def get_file_for_user(self, ipfs_hash: str, user_id: UUID) -> FileRecordInDB:
        record = await self._get_record(ipfs_hash)
        if not self.has_access(record, user_id):
            raise AccessDeniedError("Access denied")
        return record

    async def download_url_for_user(self, ipfs_hash: str, user_id: UUID) -> str:
        record = await self.get_file_for_user(ipfs_hash, user_id)
        return self.pin.gateway_url(record.ipfs_hash)

    async def list_user_files(self, user_id: UUID) -> List[FileRecordInDB]:
        return await self.file_repo.list_for_user(user_id)

    async def list_public_files(self, limit: int = 50) -> List[FileRecordInDB]:
        return await self.file_repo.list_public(limit)

    async def share_file(self, ipfs_hash: str, owner_id: UUID, user_ids: Iterable[UUID]) -> List[UUID]:
        """
        Grants read access to the given users. Only the owner may share; the
        owner is never added to the access set, owner access is implicit.
        """
        record = await self._get_record(ipfs_hash)
        if record.owner_id != owner_id:
            raise AccessDeniedError("Only file owner can share")

        wanted = set(user_ids) - {owner_id}
        unknown = wanted - await self.user_repo.find_existing_ids(wanted)
        if unknown:
            raise InvalidInputError(f"Unknown user id(s): {', '.join(sorted(str(u) for u in unknown))}")
        if not wanted:
            return record.access_list
        return await self.permission_repo.grant_access(record.id, wanted)

    async def delete_file(self, ipfs_hash: str, owner_id: UUID) -> None:
        record = await self._get_record(ipfs_hash)
        if record.owner_id != owner_id:
            raise AccessDeniedError("Only file owner can delete")

        await self.file_repo.delete(record.id)
        logger.info(f"Deleted file record {record.id} ({record.name})")
        try:
            await self.pin.unpin(record.ipfs_hash)
        except PinServiceError as e:
            logger.error(f"Record {record.id} deleted but unpin of {record.ipfs_hash} failed: {e}",
                         extra={"ipfs_hash": record.ipfs_hash})

######################## RETENTION

    async def sweep_expired(self) -> SweepReport:
        return await self.sweeper.sweep_once()
