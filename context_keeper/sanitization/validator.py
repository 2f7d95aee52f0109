"""
Deep validation of already-sanitized text.

Runs out-of-band in the sanitization worker. It only ever reports residual
risk; it never rewrites stored content. "Found issues" is an ordinary result,
while an unreachable or incoherent backend raises ValidatorUnavailableError
so the job is retried.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple

import structlog

from ..exceptions import ReasonerUnavailableError, ValidatorUnavailableError
from ..integrations.anthropic import AnthropicClient
from .patterns import EMAIL_REGEX, IP_REGEX, PATH_REGEX, PHONE_REGEX

logger = structlog.get_logger()


@dataclass
class ValidationResult:
    """Verdict from a deep validator."""

    is_clean: bool
    issues: List[str] = field(default_factory=list)

    @classmethod
    def clean(cls) -> "ValidationResult":
        return cls(is_clean=True, issues=[])


# Checks beyond the fast pass: near-misses the fast rules are too strict to
# catch, plus categories the fast pass does not redact at all.
HEURISTIC_CHECKS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("email", EMAIL_REGEX),
    ("phone", PHONE_REGEX),
    ("ip_address", IP_REGEX),
    ("user_path", PATH_REGEX),
    ("user_path", re.compile(r"(?:/Users/|/home/)(?!\[)[a-zA-Z0-9_-]+\b")),
    ("windows_user_path", re.compile(r"[A-Za-z]:\\Users\\[^\\\s]+", re.IGNORECASE)),
    (
        "street_address",
        re.compile(
            r"\b\d{1,6}\s+(?:[A-Z][a-z]+\s+){1,3}"
            r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|Drive|Dr|Court|Ct)\b"
        ),
    ),
    (
        "credential_assignment",
        re.compile(
            r"\b(?:password|passwd|pwd|secret|api[_-]?key|token)\s*[:=]\s*(?!\[REDACTED)\S+",
            re.IGNORECASE,
        ),
    ),
)


class DeepValidator(ABC):
    """Abstract base class for deep validators."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def validate(self, text: str) -> ValidationResult:
        """Return a verdict for already-redacted text."""
        pass

    def close(self) -> None:
        """Release any client the validator holds."""


class HeuristicValidator(DeepValidator):
    """Regex-based validator. Deterministic and always available."""

    @property
    def name(self) -> str:
        return "heuristic"

    def validate(self, text: str) -> ValidationResult:
        trimmed = (text or "").strip()
        if not trimmed:
            return ValidationResult.clean()

        issues: List[str] = []
        for issue, pattern in HEURISTIC_CHECKS:
            if issue not in issues and pattern.search(trimmed):
                issues.append(issue)

        return ValidationResult(is_clean=not issues, issues=issues)


VALIDATION_PROMPT = """You are a PII validation agent. Inspect the following SANITIZED text and indicate if any PII remains.
Placeholders such as [REDACTED_EMAIL] are already safe.

Text:
{text}

Respond with valid JSON only:
{{
  "isClean": true | false,
  "issues": ["category of any PII that remains"]
}}"""


class AnthropicValidator(DeepValidator):
    """Validator backed by the reasoning model."""

    def __init__(self, client: AnthropicClient):
        self.client = client

    @property
    def name(self) -> str:
        return "anthropic"

    def validate(self, text: str) -> ValidationResult:
        trimmed = (text or "").strip()
        if not trimmed:
            return ValidationResult.clean()

        try:
            parsed = self.client.complete_json(VALIDATION_PROMPT.format(text=trimmed))
        except ReasonerUnavailableError as e:
            raise ValidatorUnavailableError(str(e)) from e

        if "isClean" not in parsed:
            raise ValidatorUnavailableError("Validator reply is missing 'isClean'")

        issues = parsed.get("issues")
        if not isinstance(issues, list):
            issues = []
        issues = [str(issue) for issue in issues]

        return ValidationResult(is_clean=bool(parsed["isClean"]), issues=issues)

    def close(self) -> None:
        self.client.close()


def get_validator(settings, client: Optional[AnthropicClient] = None) -> DeepValidator:
    """Factory: reasoning-backed validator when configured, heuristic otherwise.

    Args:
        settings: Application settings
        client: Pre-built client (tests inject one with a mock transport)

    Returns:
        DeepValidator instance
    """
    if settings.deep_validation_use_reasoning and (client or settings.reasoning_available):
        validator = AnthropicValidator(client or AnthropicClient.from_settings(settings))
    else:
        validator = HeuristicValidator()

    logger.info("deep_validator_selected", validator=validator.name)
    return validator
