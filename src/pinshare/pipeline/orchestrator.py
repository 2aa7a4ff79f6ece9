import logging
from pathlib import Path
from uuid import UUID

from pinshare.config import UploadConfig
from pinshare.exceptions import (
    DatabaseError,
    DuplicateResourceError,
    InvalidInputError,
    PayloadTooLargeError,
    PinServiceConfigError,
    PinServiceError,
    StagingIOError,
    UserNotFoundError,
)
from pinshare.models.file import FileRecordCreate, FileRecordInDB
from pinshare.models.upload import CompressionOutcome, StagedUpload
from pinshare.pipeline.compressor import ContentCompressor, candidate_path
from pinshare.pipeline.inspector import inspect_size
from pinshare.pipeline.staging import discard
from pinshare.repositories import FileRepository, PinataRepository, UserRepository

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Drives one staged upload through compression, pinning and persistence.

    Steps run strictly in order. Whatever the outcome (success, a failed
    step, or cancellation of the request) every local file of the attempt is
    removed before `handle_upload` returns or raises, and a FileRecord exists
    only if the pin succeeded.
    """

    def __init__(
        self,
        config: UploadConfig,
        compressor: ContentCompressor,
        pin_repo: PinataRepository,
        file_repo: FileRepository,
        user_repo: UserRepository,
    ):
        self._config = config
        self._compressor = compressor
        self._pin = pin_repo
        self._files = file_repo
        self._users = user_repo

    async def handle_upload(
        self,
        staged: StagedUpload,
        owner_id: UUID,
        is_public: bool = False,
        description: str = "",
    ) -> FileRecordInDB:
        local_paths = {Path(staged.path), candidate_path(Path(staged.path))}
        try:
            # 1. validate
            try:
                size = inspect_size(staged.path)
            except StagingIOError as e:
                raise InvalidInputError("No file uploaded") from e
            if size == 0:
                raise InvalidInputError("Uploaded file is empty")
            if await self._users.get_by_id(owner_id) is None:
                raise UserNotFoundError(f"User {owner_id} not found")

            # 2. size ceiling, checked before any external call
            if max(size, staged.size) > self._config.max_upload_bytes:
                limit_mb = self._config.max_upload_bytes // (1024 * 1024)
                raise PayloadTooLargeError(f"File size exceeds {limit_mb}MB limit")

            if not self._pin.is_configured:
                raise PinServiceConfigError("Pinata configuration not available")

            # 3. compress
            if self._config.compression_enabled:
                logger.info(f"Compressing file: {staged.original_name} ({size} bytes)")
                outcome = await self._compressor.compress(staged.path, staged.original_name, size)
            else:
                outcome = CompressionOutcome(path=staged.path, compressed=False, original_size=size)

            # 4. pin
            try:
                cid = await self._pin.submit(
                    outcome.path, {"name": staged.original_name, "compressed": outcome.compressed}
                )
            except PinServiceError as e:
                logger.error(
                    f"Pinning '{staged.original_name}' failed: {e}",
                    extra={"upstream_status": e.status_code, "upstream_detail": e.detail},
                )
                raise

            # 5. persist
            record = FileRecordCreate(
                name=staged.original_name,
                size=outcome.stored_size,
                original_size=outcome.original_size if outcome.compressed else None,
                compressed=outcome.compressed,
                mime_type=staged.mime_type,
                ipfs_hash=cid,
                owner_id=owner_id,
                is_public=is_public,
                description=description or "",
            )
            try:
                saved = await self._files.create(record)
            except DuplicateResourceError:
                # The existing record still points at this content
                raise
            except Exception:
                # The pin is ours alone, nothing references it yet
                await self._unpin_quietly(cid)
                raise

            # 6. owner's file set; the record is already the source of truth
            try:
                await self._users.append_file(owner_id, saved.id)
            except DatabaseError as e:
                logger.error(
                    f"File record {saved.id} saved but not linked to its owner: {e}",
                    extra={"file_id": str(saved.id), "owner_id": str(owner_id), "ipfs_hash": cid},
                )

            logger.info(f"Stored file record {saved.id} for {cid}")
            return saved
        finally:
            # 7. local storage holds nothing once the request is done
            for path in local_paths:
                discard(path)

    async def _unpin_quietly(self, cid: str) -> None:
        try:
            await self._pin.unpin(cid)
        except PinServiceError as e:
            logger.error(f"Could not unpin orphaned content {cid}: {e}", extra={"ipfs_hash": cid})
