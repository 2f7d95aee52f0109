"""
Background workers - claim queued jobs and process them.

Usage:
    python -m context_keeper.worker sanitize
    python -m context_keeper.worker learn

Components:
    - loop: Shared poll/claim/process/complete harness
    - sanitization: Deep validation of stored messages
    - learning: Learning extraction from conversations
    - runner: Worker factory and process entry point
"""

from .learning import LearningWorker
from .loop import JobOutcome, WorkerLoop
from .runner import create_worker, run_worker
from .sanitization import SanitizationWorker

__all__ = [
    "WorkerLoop",
    "JobOutcome",
    "SanitizationWorker",
    "LearningWorker",
    "create_worker",
    "run_worker",
]
