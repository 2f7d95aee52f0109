"""
Worker construction and process entry point.
"""
from __future__ import annotations

from typing import Optional

from ..config import Settings, get_settings
from ..db.base import Store
from ..learning.extractors import get_extractor
from ..log import configure_logging
from ..sanitization.validator import get_validator
from .learning import LearningWorker
from .loop import WorkerLoop
from .sanitization import SanitizationWorker

WORKER_KINDS = ("sanitize", "learn")


def create_worker(
    kind: str,
    store: Store,
    settings: Settings,
    poll_interval: Optional[float] = None,
) -> WorkerLoop:
    """Factory function to get a worker by kind.

    Args:
        kind: "sanitize" (deep validation) or "learn" (learning extraction)
        store: Store handle
        settings: Settings used to pick the validator/extractor strategy
        poll_interval: Seconds between empty polls (default from settings)

    Raises:
        ValueError: If the worker kind is not supported
    """
    interval = settings.worker_poll_interval if poll_interval is None else poll_interval

    if kind == "sanitize":
        return SanitizationWorker(
            store, validator=get_validator(settings), poll_interval=interval
        )
    if kind == "learn":
        return LearningWorker(
            store, extractor=get_extractor(settings), poll_interval=interval
        )
    raise ValueError(
        f"Unsupported worker kind: {kind}. Supported: {', '.join(WORKER_KINDS)}"
    )


def run_worker(
    kind: str,
    poll_interval: Optional[float] = None,
    once: bool = False,
    max_jobs: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> int:
    """Run a worker process.

    Args:
        kind: Worker kind
        poll_interval: Seconds between empty polls
        once: Drain the queue and exit instead of polling forever
        max_jobs: Stop after this many jobs

    Returns:
        Number of jobs processed when ``once`` is set, otherwise 0
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    store = Store.from_settings(settings)
    store.create_all()
    worker = create_worker(kind, store, settings, poll_interval=poll_interval)

    try:
        if once:
            return worker.drain(max_jobs=max_jobs)
        worker.start(max_jobs=max_jobs)
        return 0
    finally:
        worker.close()
        store.dispose()
