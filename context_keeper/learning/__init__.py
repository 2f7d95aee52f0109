"""
Learning extraction: derive a short, reusable learning from a conversation.
"""

from .extractors import (
    ExtractionResult,
    Extractor,
    FallbackExtractor,
    HeuristicExtractor,
    LearningDraft,
    ReasoningExtractor,
    get_extractor,
)

__all__ = [
    "Extractor",
    "ExtractionResult",
    "LearningDraft",
    "HeuristicExtractor",
    "ReasoningExtractor",
    "FallbackExtractor",
    "get_extractor",
]
