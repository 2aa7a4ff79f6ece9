import logging
import re
import time
from pathlib import Path
from uuid import uuid4

from fastapi import UploadFile

from pinshare.exceptions import StagingIOError
from pinshare.models.upload import StagedUpload
from pinshare.utils.aio import run_io_bound

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def staged_name(original_name: str) -> str:
    """Collision-free local name: time prefix plus a random tag, like `1712345678901-3fa1c2d0-report.pdf`."""
    safe = _UNSAFE.sub("_", Path(original_name).name).strip("._") or "upload"
    return f"{time.time_ns()}-{uuid4().hex[:8]}-{safe[:100]}"


def discard(path: Path) -> None:
    """Best-effort removal of a scratch file."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.error(f"Failed to remove local file '{path}': {e}", extra={"path": str(path)})


async def stage_upload(upload: UploadFile, staging_dir: Path, max_bytes: int, chunk_size: int) -> StagedUpload:
    """
    Streams an inbound upload to scratch storage.

    Writing stops one byte past `max_bytes`; the orchestrator sees the size
    and rejects the upload without the disk filling up.
    """
    staging_dir = Path(staging_dir)
    original_name = upload.filename or "upload"
    path = staging_dir / staged_name(original_name)
    written = 0
    try:
        staging_dir.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as fh:
            while written <= max_bytes:
                chunk = await upload.read(chunk_size)
                if not chunk:
                    break
                chunk = chunk[: max_bytes + 1 - written]
                await run_io_bound(fh.write, chunk)
                written += len(chunk)
    except OSError as e:
        discard(path)
        raise StagingIOError(f"Failed to stage upload '{original_name}': {e}") from e
    except BaseException:
        discard(path)
        raise

    logger.debug(f"Staged '{original_name}' as {path.name} ({written} bytes)")
    return StagedUpload(
        path=path,
        original_name=original_name,
        mime_type=upload.content_type or "application/octet-stream",
        size=written,
    )
