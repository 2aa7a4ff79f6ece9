from .inspector import inspect_size
from .compressor import ContentCompressor
from .staging import stage_upload
from .orchestrator import UploadOrchestrator
from .retention import RetentionSweeper, SweepReport

__all__ = [
    "inspect_size",
    "ContentCompressor",
    "stage_upload",
    "UploadOrchestrator",
    "RetentionSweeper",
    "SweepReport",
]
