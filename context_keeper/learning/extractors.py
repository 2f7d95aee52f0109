"""
Learning extraction strategies.

A strategy turns a conversation transcript into at most one learning draft
and reports the outcome explicitly:

- value: a draft to persist
- none: nothing worth keeping (normal, not an error)
- failure: the strategy could not run; the worker retries the job

FallbackExtractor degrades a failing reasoning strategy to the heuristic one,
so in the default wiring a failure never reaches the worker.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import structlog

from ..db.models import LEARNING_CATEGORIES
from ..db.services import Transcript
from ..exceptions import ReasonerUnavailableError
from ..integrations.anthropic import AnthropicClient

logger = structlog.get_logger()

CODE_FENCE = "```"
DEFAULT_TITLE = "Assistant insight"


@dataclass(frozen=True)
class LearningDraft:
    """A learning that has not been persisted yet."""

    category: str
    title: str
    content: str


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of one extraction attempt."""

    status: str  # "value", "none", "failure"
    draft: Optional[LearningDraft] = None
    error: Optional[str] = None

    @classmethod
    def value(cls, draft: LearningDraft) -> "ExtractionResult":
        return cls(status="value", draft=draft)

    @classmethod
    def none(cls) -> "ExtractionResult":
        return cls(status="none")

    @classmethod
    def failure(cls, error: str) -> "ExtractionResult":
        return cls(status="failure", error=error)

    @property
    def is_failure(self) -> bool:
        return self.status == "failure"


class Extractor(ABC):
    """Abstract base class for extraction strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def extract(self, transcript: Transcript) -> ExtractionResult:
        pass

    def close(self) -> None:
        pass


class HeuristicExtractor(Extractor):
    """Emits one learning when a responder message shares a fenced code block."""

    @property
    def name(self) -> str:
        return "heuristic"

    def extract(self, transcript: Transcript) -> ExtractionResult:
        for message in transcript.responder_messages():
            if CODE_FENCE in message.content:
                return ExtractionResult.value(
                    LearningDraft(
                        category="technical",
                        title="Code example shared",
                        content=message.content,
                    )
                )
        return ExtractionResult.none()


EXTRACTION_PROMPT = """You summarize coding conversations into concise learnings.
Conversation ID: {conversation_id}
Messages:
{messages}

Respond with JSON only:
{{
  "category": "technical" | "workflow" | "insight",
  "title": "short title",
  "content": "actionable learning"
}}
If nothing in the conversation is worth keeping, respond with {{"skip": true}}."""


class ReasoningExtractor(Extractor):
    """Asks the reasoning model for a learning."""

    def __init__(self, client: AnthropicClient, max_tokens: int = 600):
        self.client = client
        self.max_tokens = max_tokens

    @property
    def name(self) -> str:
        return "reasoning"

    def _prompt(self, transcript: Transcript) -> str:
        lines = "\n".join(f"{m.role.upper()}: {m.content}" for m in transcript.messages)
        return EXTRACTION_PROMPT.format(conversation_id=transcript.conversation_id, messages=lines)

    def extract(self, transcript: Transcript) -> ExtractionResult:
        if not transcript.messages:
            return ExtractionResult.none()

        try:
            parsed = self.client.complete_json(self._prompt(transcript), max_tokens=self.max_tokens)
        except ReasonerUnavailableError as e:
            return ExtractionResult.failure(str(e))

        if parsed.get("skip"):
            return ExtractionResult.none()

        content = str(parsed.get("content") or "").strip()
        if not content:
            return ExtractionResult.none()

        category = parsed.get("category")
        if category not in LEARNING_CATEGORIES:
            category = "insight"

        title = str(parsed.get("title") or "").strip() or DEFAULT_TITLE

        return ExtractionResult.value(
            LearningDraft(category=category, title=title[:255], content=content)
        )

    def close(self) -> None:
        self.client.close()


class FallbackExtractor(Extractor):
    """Runs ``primary``; on failure returns whatever ``fallback`` produces."""

    def __init__(self, primary: Extractor, fallback: Extractor):
        self.primary = primary
        self.fallback = fallback

    @property
    def name(self) -> str:
        return f"{self.primary.name}+{self.fallback.name}"

    def extract(self, transcript: Transcript) -> ExtractionResult:
        result = self.primary.extract(transcript)
        if not result.is_failure:
            return result

        logger.warning(
            "extraction_fallback",
            conversation_id=transcript.conversation_id,
            strategy=self.primary.name,
            error=result.error,
        )
        return self.fallback.extract(transcript)

    def close(self) -> None:
        self.primary.close()
        self.fallback.close()


def get_extractor(settings, client: Optional[AnthropicClient] = None) -> Extractor:
    """Factory: reasoning with heuristic fallback when configured, heuristic otherwise."""
    if settings.learning_use_reasoning and (client or settings.reasoning_available):
        extractor: Extractor = FallbackExtractor(
            ReasoningExtractor(client or AnthropicClient.from_settings(settings)),
            HeuristicExtractor(),
        )
    else:
        extractor = HeuristicExtractor()

    logger.info("extractor_selected", extractor=extractor.name)
    return extractor
