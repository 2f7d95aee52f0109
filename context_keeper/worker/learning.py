"""
Learning extraction worker.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from ..db.base import Store
from ..db.services import ConversationService, LearningService, Transcript
from ..exceptions import ExtractionError
from ..learning.extractors import ExtractionResult, Extractor, HeuristicExtractor
from ..queue.payloads import EXTRACT_LEARNING, ExtractionPayload
from .loop import WorkerLoop


class LearningWorker(WorkerLoop):
    """Processes ``extract_learning_ai`` jobs: at most one learning per job."""

    job_type = EXTRACT_LEARNING

    def __init__(
        self,
        store: Store,
        extractor: Optional[Extractor] = None,
        **kwargs,
    ):
        self.extractor = extractor or HeuristicExtractor()
        super().__init__(store, **kwargs)

    def load(self, db: Session, payload: ExtractionPayload) -> Optional[Transcript]:
        transcript = ConversationService(db).get_transcript(payload.conversation_id)
        return transcript if transcript.messages else None

    def process(self, transcript: Transcript) -> ExtractionResult:
        result = self.extractor.extract(transcript)
        if result.is_failure:
            raise ExtractionError(result.error or f"{self.extractor.name} extraction failed")
        return result

    def persist(
        self,
        db: Session,
        payload: ExtractionPayload,
        transcript: Transcript,
        result: ExtractionResult,
    ) -> str:
        if result.draft is None:
            return "no_learning"

        learning = LearningService(db).save_learning(
            conversation_id=payload.conversation_id,
            category=result.draft.category,
            title=result.draft.title,
            content=result.draft.content,
        )
        self.logger.info(
            "learning_saved",
            learning_id=learning.id,
            conversation_id=payload.conversation_id,
            category=learning.category,
        )
        return "learning_saved"

    def close(self) -> None:
        self.extractor.close()
