import os
from pathlib import Path

from pinshare.exceptions import StagingIOError


def inspect_size(path: Path | str) -> int:
    """Byte length of a staged file. Raises StagingIOError if it is missing or unreadable."""
    try:
        stat = os.stat(path)
    except OSError as e:
        raise StagingIOError(f"Cannot stat staged file '{path}': {e}") from e
    if not os.access(path, os.R_OK):
        raise StagingIOError(f"Staged file '{path}' is not readable")
    return stat.st_size
