"""
Deep validation worker.

Re-checks already-sanitized message content with a higher-recall validator
and records residual issues. Content is never rewritten here.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from ..db.base import Store
from ..db.services import ConversationService, FindingService
from ..queue.payloads import SANITIZE_ASYNC, DeepValidationPayload
from ..sanitization.validator import DeepValidator, HeuristicValidator, ValidationResult
from .loop import WorkerLoop


class SanitizationWorker(WorkerLoop):
    """Processes ``sanitize_async`` jobs."""

    job_type = SANITIZE_ASYNC

    def __init__(
        self,
        store: Store,
        validator: Optional[DeepValidator] = None,
        **kwargs,
    ):
        self.validator = validator or HeuristicValidator()
        super().__init__(store, **kwargs)

    def load(self, db: Session, payload: DeepValidationPayload) -> Optional[str]:
        message = ConversationService(db).get_message(payload.message_id)
        return None if message is None else message.content

    def process(self, content: str) -> ValidationResult:
        return self.validator.validate(content)

    def persist(
        self,
        db: Session,
        payload: DeepValidationPayload,
        content: str,
        verdict: ValidationResult,
    ) -> str:
        if verdict.is_clean:
            return "clean"

        finding = FindingService(db).record_finding(payload.message_id, verdict.issues)
        self.logger.warning(
            "residual_pii_detected",
            message_id=payload.message_id,
            finding_id=finding.id,
            issues=finding.issues,
        )
        return "finding_recorded"

    def close(self) -> None:
        self.validator.close()
