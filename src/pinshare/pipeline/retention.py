import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from pinshare.config import RetentionConfig
from pinshare.exceptions import PinServiceError, PinShareError
from pinshare.repositories import FileRepository, PinataRepository

logger = logging.getLogger(__name__)


class SweepReport(BaseModel):
    examined: int = 0
    deleted: int = 0
    unpin_failures: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class RetentionSweeper:
    """
    Periodically deletes file records older than the retention age.

    Un-pinning is best-effort: the record is deleted even when the gateway
    call fails, and the failed content addresses are reported and logged.
    A failure on one record never stops the rest of the batch.
    """

    def __init__(self, file_repo: FileRepository, pin_repo: PinataRepository, config: RetentionConfig):
        self._files = file_repo
        self._pin = pin_repo
        self._config = config

    async def sweep_once(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self._config.max_age_days)
        report = SweepReport()

        try:
            expired = await self._files.list_created_before(cutoff)
        except PinShareError as e:
            logger.error(f"Retention sweep could not list expired files: {e}")
            report.errors.append(str(e))
            return report

        report.examined = len(expired)
        logger.info(f"Found {len(expired)} files older than {self._config.max_age_days} days")

        for record in expired:
            try:
                await self._pin.unpin(record.ipfs_hash)
            except PinServiceError as e:
                report.unpin_failures.append(record.ipfs_hash)
                logger.error(
                    f"Failed to unpin {record.ipfs_hash} ({record.name}): {e}",
                    extra={"ipfs_hash": record.ipfs_hash, "file_id": str(record.id)},
                )
            except Exception:
                report.unpin_failures.append(record.ipfs_hash)
                logger.exception(
                    f"Unexpected error unpinning {record.ipfs_hash} ({record.name})",
                    extra={"ipfs_hash": record.ipfs_hash, "file_id": str(record.id)},
                )

            try:
                if await self._files.delete(record.id):
                    report.deleted += 1
                    logger.info(f"Deleted file record: {record.name}")
            except PinShareError as e:
                report.errors.append(f"{record.id}: {e}")
                logger.error(f"Error cleaning up file {record.name}: {e}", extra={"file_id": str(record.id)})
            except Exception as e:
                # Driver errors can arrive unwrapped; the rest of the batch still runs
                report.errors.append(f"{record.id}: {e!r}")
                logger.exception(f"Unexpected error cleaning up file {record.name}", extra={"file_id": str(record.id)})

        logger.info(f"Cleanup completed. Removed {report.deleted} old files.")
        return report

    async def run_forever(self) -> None:
        logger.info(f"Retention sweeper started, interval {self._config.interval_seconds}s")
        while True:
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Retention sweep crashed, will retry on the next interval")
            await asyncio.sleep(self._config.interval_seconds)
