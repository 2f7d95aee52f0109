"""
context-keeper

Captures conversational turns, stores a privacy-sanitized copy, and defers
deep validation and learning extraction to background workers.
"""

import importlib.metadata

__author__ = "George Loudon"
__email__ = "george@example.com"
__version__ = importlib.metadata.version("context-keeper")

from .db.base import Store
from .ingestion.capture import capture_event
from .queue.job_queue import JobQueue
from .sanitization.fast import sanitize
from .worker import LearningWorker, SanitizationWorker

__all__ = [
    "Store",
    "JobQueue",
    "capture_event",
    "sanitize",
    "SanitizationWorker",
    "LearningWorker",
]
