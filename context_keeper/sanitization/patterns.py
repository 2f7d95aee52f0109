"""
Canonical regex definitions for the fast PII sanitization pass.

Each rule redacts to ``[REDACTED_<NAME>]``. The list is ordered: specific
credential formats first, then the generic number-shaped classes, so that a
card number is not half-eaten by the phone rule.
"""

import re
from dataclasses import dataclass
from typing import Pattern, Tuple


@dataclass(frozen=True)
class RedactionRule:
    """A detect-and-replace rule for one category of sensitive text."""

    name: str
    pattern: Pattern[str]

    @property
    def placeholder(self) -> str:
        return f"[REDACTED_{self.name}]"


EMAIL_REGEX = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

# Optional country code, optional parentheses around the area code,
# separators space/dot/hyphen. Must not start in the middle of a word.
PHONE_REGEX = re.compile(
    r"(?<![\w+])(?:\+\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"
)

IP_REGEX = re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b")

# /Users/<name>/... or /home/<name>/..., up to the next whitespace
PATH_REGEX = re.compile(r"(?:/Users/|/home/)[a-zA-Z0-9_-]+/\S*")

OPENAI_API_KEY_REGEX = re.compile(r"sk-[a-zA-Z0-9]{48}")

ANTHROPIC_API_KEY_REGEX = re.compile(r"sk-ant-[a-zA-Z0-9-]{95}")

AWS_ACCESS_KEY_REGEX = re.compile(r"AKIA[0-9A-Z]{16}")

GITHUB_TOKEN_REGEX = re.compile(r"ghp_[a-zA-Z0-9]{36}")

JWT_REGEX = re.compile(r"eyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+")

SSH_PRIVATE_KEY_REGEX = re.compile(
    r"-----BEGIN (?:RSA|OPENSSH) PRIVATE KEY-----[\s\S]+?-----END (?:RSA|OPENSSH) PRIVATE KEY-----"
)

CREDIT_CARD_REGEX = re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b")

SSN_REGEX = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")


PII_RULES: Tuple[RedactionRule, ...] = (
    RedactionRule("SSH_KEY", SSH_PRIVATE_KEY_REGEX),
    RedactionRule("API_KEY_ANTHROPIC", ANTHROPIC_API_KEY_REGEX),
    RedactionRule("API_KEY_OPENAI", OPENAI_API_KEY_REGEX),
    RedactionRule("AWS_ACCESS_KEY", AWS_ACCESS_KEY_REGEX),
    RedactionRule("GITHUB_TOKEN", GITHUB_TOKEN_REGEX),
    RedactionRule("JWT", JWT_REGEX),
    RedactionRule("EMAIL", EMAIL_REGEX),
    RedactionRule("CREDIT_CARD", CREDIT_CARD_REGEX),
    RedactionRule("SSN", SSN_REGEX),
    RedactionRule("PHONE", PHONE_REGEX),
    RedactionRule("IP", IP_REGEX),
    RedactionRule("PATH", PATH_REGEX),
)

RULES_BY_NAME = {rule.name: rule for rule in PII_RULES}
