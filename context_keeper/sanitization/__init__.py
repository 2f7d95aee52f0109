"""
Two-stage sanitization.

- fast: synchronous regex redaction applied before anything is persisted
- validator: slower, higher-recall check run out-of-band on redacted text
"""

from .fast import find_matches, sanitize
from .patterns import PII_RULES, RedactionRule
from .validator import (
    AnthropicValidator,
    DeepValidator,
    HeuristicValidator,
    ValidationResult,
    get_validator,
)

__all__ = [
    "sanitize",
    "find_matches",
    "PII_RULES",
    "RedactionRule",
    "DeepValidator",
    "HeuristicValidator",
    "AnthropicValidator",
    "ValidationResult",
    "get_validator",
]
