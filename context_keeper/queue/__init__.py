"""
Durable, polling-based job queue shared by all background workers.
"""

from .job_queue import DEFAULT_MAX_ATTEMPTS, JobQueue
from .payloads import (
    EXTRACT_LEARNING,
    SANITIZE_ASYNC,
    DeepValidationPayload,
    ExtractionPayload,
    JobPayload,
    decode_payload,
    encode_payload,
)

__all__ = [
    "JobQueue",
    "DEFAULT_MAX_ATTEMPTS",
    "SANITIZE_ASYNC",
    "EXTRACT_LEARNING",
    "JobPayload",
    "DeepValidationPayload",
    "ExtractionPayload",
    "decode_payload",
    "encode_payload",
]
