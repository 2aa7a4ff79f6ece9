from pathlib import Path
from typing import Optional

from pydantic import BaseModel, model_validator


class StagedUpload(BaseModel):
    """A request body written to local scratch storage for the duration of one upload."""

    path: Path
    original_name: str
    mime_type: str = "application/octet-stream"
    size: int


class CompressionOutcome(BaseModel):
    path: Path
    compressed: bool = False
    original_size: int
    final_size: Optional[int] = None

    @model_validator(mode="after")
    def _check_sizes(self) -> "CompressionOutcome":
        if self.compressed:
            if self.final_size is None or self.final_size > self.original_size:
                raise ValueError("compressed outcome must not be larger than the original")
        elif self.final_size is not None:
            raise ValueError("final_size is only set when compression was applied")
        return self

    @property
    def stored_size(self) -> int:
        """Size of the bytes that actually get pinned."""
        return self.final_size if self.compressed else self.original_size
