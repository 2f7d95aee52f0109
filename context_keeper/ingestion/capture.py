"""
Capture entry point.

One JSON event per invocation (a hook pipes it on stdin). The text is
sanitized before any row is built, the message is appended to its
conversation, and follow-up jobs are enqueued in the same transaction.

Capture never raises: a hook must not be able to block its producer, so
every failure is logged and reported as ``None``.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from ..db.base import Store
from ..db.services import ConversationService
from ..queue.job_queue import JobQueue
from ..queue.payloads import (
    EXTRACT_LEARNING,
    SANITIZE_ASYNC,
    DeepValidationPayload,
    ExtractionPayload,
)
from ..sanitization.fast import sanitize

logger = structlog.get_logger()


class CaptureEvent(BaseModel):
    """Shape of an incoming hook event.

    Accepts ``prompt`` or ``content`` for the text and ``session_id`` or
    ``conversation_id`` for the correlation key.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    type: Optional[str] = None
    role: Literal["user", "assistant"] = "user"
    prompt: Optional[str] = None
    content: Optional[str] = None
    session_id: Optional[str] = None
    conversation_id: Optional[str] = None

    @model_validator(mode="after")
    def require_text(self) -> "CaptureEvent":
        if not (self.text or "").strip():
            raise ValueError("Event carries no 'prompt' or 'content' text")
        return self

    @property
    def text(self) -> Optional[str]:
        return self.prompt if self.prompt is not None else self.content

    @property
    def correlation_key(self) -> Optional[str]:
        key = self.session_id or self.conversation_id
        return str(key) if key else None


def event_summary(event: CaptureEvent) -> Dict[str, Any]:
    """Log-safe description of an event (never includes the text)."""
    return {
        "event_type": event.type or "unknown",
        "role": event.role,
        "has_correlation_key": event.correlation_key is not None,
        "length": len(event.text or ""),
    }


@dataclass
class CaptureResult:
    """What a successful capture wrote."""

    conversation_id: str
    message_id: str
    sequence: int
    job_ids: List[str] = field(default_factory=list)


def parse_event(raw: str) -> Optional[CaptureEvent]:
    """Parse a raw hook payload; returns None (and logs) when it is unusable."""
    if not raw or not raw.strip():
        logger.warning("capture_skipped", reason="empty_input")
        return None

    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("capture_skipped", reason="invalid_json", error=str(e))
        return None

    if not isinstance(data, dict):
        logger.warning("capture_skipped", reason="not_an_object")
        return None

    try:
        event = CaptureEvent.model_validate(data)
    except ValidationError as e:
        logger.warning("capture_skipped", reason="invalid_event", errors=e.error_count())
        return None

    logger.info("event_received", **event_summary(event))
    return event


def record_event(
    store: Store, event: CaptureEvent, max_attempts: Optional[int] = None
) -> CaptureResult:
    """Persist a parsed event and enqueue its follow-up jobs. May raise."""
    # Redact before the text gets anywhere near a session
    content = sanitize(event.text)

    with store.session_scope() as db:
        conversations = ConversationService(db)
        queue = JobQueue(db)

        conversation = conversations.get_or_create_conversation(event.correlation_key)
        message = conversations.append_message(conversation.id, event.role, content)

        job_ids = [
            queue.enqueue(
                SANITIZE_ASYNC,
                DeepValidationPayload(
                    message_id=message.id,
                    conversation_id=conversation.id,
                    sequence=message.sequence,
                    created_at=message.created_at,
                ),
                max_attempts=max_attempts,
            )
        ]
        if event.role == "assistant":
            job_ids.append(
                queue.enqueue(
                    EXTRACT_LEARNING,
                    ExtractionPayload(conversation_id=conversation.id),
                    max_attempts=max_attempts,
                )
            )

        result = CaptureResult(
            conversation_id=conversation.id,
            message_id=message.id,
            sequence=message.sequence,
            job_ids=job_ids,
        )

    logger.info(
        "event_captured",
        conversation_id=result.conversation_id,
        message_id=result.message_id,
        sequence=result.sequence,
        jobs=len(result.job_ids),
    )
    return result


def capture_event(
    store: Store, raw: str, max_attempts: Optional[int] = None
) -> Optional[CaptureResult]:
    """Capture one raw event. Never raises.

    Args:
        store: Store handle
        raw: Raw JSON text as delivered by the hook
        max_attempts: Retry bound for the enqueued jobs (queue default if None)

    Returns:
        CaptureResult, or None when the event was skipped or could not be stored
    """
    try:
        event = parse_event(raw)
        if event is None:
            return None
        return record_event(store, event, max_attempts=max_attempts)
    except Exception as e:
        logger.error("capture_failed", error_type=type(e).__name__, error=str(e))
        return None

