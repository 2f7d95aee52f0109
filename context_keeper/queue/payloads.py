"""
Job payload shapes, one per job type.

The job's ``type`` column is the discriminator; each type has a pydantic
model used to decode its payload. Anything that does not decode cleanly
raises MalformedPayloadError, which workers treat as a retryable failure.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, constr

from ..exceptions import MalformedPayloadError

SANITIZE_ASYNC = "sanitize_async"
EXTRACT_LEARNING = "extract_learning_ai"


class JobPayload(BaseModel):
    """Base class for job payloads (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DeepValidationPayload(JobPayload):
    """Payload of a ``sanitize_async`` job.

    Capture raises it with all four fields; only the message id is needed to
    run the validation.
    """

    message_id: constr(min_length=1) = Field(alias="messageId")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    sequence: Optional[int] = None
    created_at: Optional[datetime] = None


class ExtractionPayload(JobPayload):
    """Payload of an ``extract_learning_ai`` job."""

    conversation_id: constr(min_length=1) = Field(alias="conversationId")


PAYLOAD_TYPES: Dict[str, Type[JobPayload]] = {
    SANITIZE_ASYNC: DeepValidationPayload,
    EXTRACT_LEARNING: ExtractionPayload,
}


def encode_payload(payload: Union[JobPayload, Dict[str, Any]]) -> str:
    """Serialize a payload for the ``job_queue.payload`` column."""
    if isinstance(payload, JobPayload):
        payload = payload.to_wire()
    return json.dumps(payload, default=str)


def decode_payload(job_type: str, raw: Optional[str]) -> JobPayload:
    """Decode a stored payload with the model registered for ``job_type``.

    Raises:
        MalformedPayloadError: unknown type, invalid JSON, or shape mismatch
    """
    model = PAYLOAD_TYPES.get(job_type)
    if model is None:
        raise MalformedPayloadError(f"No payload type registered for job type '{job_type}'")

    try:
        data = json.loads(raw or "")
    except (TypeError, ValueError) as e:
        raise MalformedPayloadError(f"Payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedPayloadError("Payload must be a JSON object")

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedPayloadError(
            f"Invalid {job_type} payload: {e.error_count()} validation error(s)"
        ) from e
