import asyncio
import gzip
import logging
import shutil
from pathlib import Path

from PIL import Image

from pinshare.config import UploadConfig
from pinshare.models.upload import CompressionOutcome
from pinshare.pipeline.inspector import inspect_size
from pinshare.utils.aio import run_io_bound
from pinshare.utils.cli_utils import human_size

logger = logging.getLogger(__name__)

IMAGE_FORMATS = {".png": "PNG", ".jpg": "JPEG", ".jpeg": "JPEG", ".webp": "WEBP"}
CANDIDATE_SUFFIX = ".compressed"


def candidate_path(path: Path) -> Path:
    return path.with_name(path.name + CANDIDATE_SUFFIX)


class ContentCompressor:
    """
    Decides whether a staged file is worth shrinking before it is pinned.

    Images are re-encoded in their own format at a fixed quality, everything
    else goes through gzip. The candidate only replaces the original when it
    saves at least the configured margin; whichever file loses is deleted
    before `compress` returns, so one file per upload survives on disk.
    """

    def __init__(self, config: UploadConfig):
        self._config = config

    async def compress(self, path: Path, original_name: str, declared_size: int) -> CompressionOutcome:
        path = Path(path)
        if declared_size < self._config.small_file_threshold:
            logger.debug(f"'{original_name}' is below the compression threshold, skipping")
            return CompressionOutcome(path=path, compressed=False, original_size=declared_size)

        candidate = candidate_path(path)
        image_format = IMAGE_FORMATS.get(Path(original_name).suffix.lower())
        if image_format:
            kind, margin = "image", self._config.image_min_reduction
        else:
            kind, margin = "generic", self._config.generic_min_reduction

        try:
            if image_format:
                await self._run_to_completion(self._reencode_image, path, candidate, image_format)
            else:
                await self._run_to_completion(self._gzip_file, path, candidate, self._config.chunk_size)
            candidate_size = inspect_size(candidate)

            reduction = (1 - candidate_size / declared_size) * 100
            logger.info(
                f"{kind.capitalize()} compressed: {human_size(declared_size)} -> "
                f"{human_size(candidate_size)} ({reduction:.1f}% reduction)"
            )

            if candidate_size < declared_size * (1 - margin):
                path.unlink()
                return CompressionOutcome(
                    path=candidate, compressed=True, original_size=declared_size, final_size=candidate_size
                )
            candidate.unlink()
            return CompressionOutcome(path=path, compressed=False, original_size=declared_size)
        except Exception as e:
            return self._skip_compression(path, candidate, original_name, declared_size, e)

    def _skip_compression(
        self, path: Path, candidate: Path, original_name: str, declared_size: int, error: Exception
    ) -> CompressionOutcome:
        """
        Graceful degradation: a codec or disk error never fails the upload,
        the original bytes are pinned instead.
        """
        logger.warning(f"Compression of '{original_name}' failed, keeping original: {error}")
        if path.exists():
            candidate.unlink(missing_ok=True)
            return CompressionOutcome(path=path, compressed=False, original_size=declared_size)
        # The original was already removed after a successful encode; the candidate is all that's left
        final_size = inspect_size(candidate)
        return CompressionOutcome(path=candidate, compressed=True, original_size=declared_size, final_size=final_size)

    @staticmethod
    async def _run_to_completion(func, *args) -> None:
        # Executor threads cannot be interrupted. On cancellation wait for the
        # worker to finish so the caller's cleanup sees every file it wrote.
        task = asyncio.ensure_future(run_io_bound(func, *args))
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            await asyncio.wait({task})
            raise

    def _reencode_image(self, src: Path, dst: Path, image_format: str) -> None:
        quality = self._config.image_quality
        with Image.open(src) as img:
            if image_format == "JPEG":
                if img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                img.save(dst, format="JPEG", quality=quality, optimize=True, progressive=True)
            elif image_format == "PNG":
                img.save(dst, format="PNG", optimize=True, compress_level=self._config.png_compress_level)
            else:
                img.save(dst, format="WEBP", quality=quality)

    @staticmethod
    def _gzip_file(src: Path, dst: Path, chunk_size: int) -> None:
        with open(src, "rb") as fin, gzip.open(dst, "wb") as fout:
            shutil.copyfileobj(fin, fout, chunk_size)
