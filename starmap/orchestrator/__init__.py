"""Chunk planning and concurrent job orchestration."""

from .chunking import Chunk, partition
from .jobs import DispatchMode, Job, JobOrchestrator, JobState

__all__ = [
    "Chunk",
    "partition",
    "DispatchMode",
    "Job",
    "JobOrchestrator",
    "JobState",
]
