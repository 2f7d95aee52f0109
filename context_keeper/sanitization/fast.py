"""
Fast sanitization for PII.

Regex-only, synchronous, and total: it runs on the capture path before any
write touches the database, so it must never raise and never block.
"""

from typing import List

from .patterns import (
    EMAIL_REGEX,
    IP_REGEX,
    PATH_REGEX,
    PHONE_REGEX,
    PII_RULES,
    RULES_BY_NAME,
)

# A replacement can expose a new match only in contrived inputs; a few passes
# always reach a fixed point for the shipped rules.
MAX_PASSES = 3


def sanitize_emails(text: str) -> str:
    """Sanitizes email addresses in text."""
    return EMAIL_REGEX.sub(RULES_BY_NAME["EMAIL"].placeholder, text)


def sanitize_phones(text: str) -> str:
    """Sanitizes phone numbers in text."""
    return PHONE_REGEX.sub(RULES_BY_NAME["PHONE"].placeholder, text)


def sanitize_ips(text: str) -> str:
    """Sanitizes IPv4 addresses in text."""
    return IP_REGEX.sub(RULES_BY_NAME["IP"].placeholder, text)


def sanitize_paths(text: str) -> str:
    """Sanitizes user home directory paths in text."""
    return PATH_REGEX.sub(RULES_BY_NAME["PATH"].placeholder, text)


def _apply_rules(text: str) -> str:
    for rule in PII_RULES:
        text = rule.pattern.sub(rule.placeholder, text)
    return text


def sanitize(text: str) -> str:
    """Apply every redaction rule until none matches.

    Args:
        text: Raw text. Non-string input is treated as empty.

    Returns:
        Text with each sensitive token replaced by its category placeholder
    """
    if not isinstance(text, str) or not text:
        return text if isinstance(text, str) else ""

    result = text
    for _ in range(MAX_PASSES):
        updated = _apply_rules(result)
        if updated == result:
            break
        result = updated
    return result


def find_matches(text: str) -> List[str]:
    """Return the names of the rules that match somewhere in ``text``."""
    if not isinstance(text, str):
        return []
    return [rule.name for rule in PII_RULES if rule.pattern.search(text)]
