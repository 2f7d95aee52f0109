"""
Client for the Anthropic Messages API.

Used by the deep validator and the reasoning extraction strategy. Both treat
every failure raised here as "dependency unavailable".
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from ..exceptions import ReasonerUnavailableError

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicClient:
    """
    Minimal synchronous client for single-turn completions.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        base_url: str = "https://api.anthropic.com",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
        )

    @classmethod
    def from_settings(cls, settings) -> "AnthropicClient":
        return cls(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            base_url=settings.anthropic_base_url,
            timeout=settings.anthropic_timeout_seconds,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        """Send one user prompt and return the text of the first content block."""
        data = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": 0,
            "messages": [{"role": "user", "content": prompt}],
        }

        try:
            response = self.client.post(f"{self.base_url}/v1/messages", json=data)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Anthropic request failed: {e}")
            raise ReasonerUnavailableError(str(e)) from e
        except ValueError as e:
            raise ReasonerUnavailableError(f"Invalid JSON from Anthropic: {e}") from e

        for block in body.get("content") or []:
            if block.get("type") == "text" and block.get("text"):
                return block["text"]

        raise ReasonerUnavailableError("Anthropic response contained no text block")

    def complete_json(self, prompt: str, max_tokens: int = 1000) -> Dict[str, Any]:
        """Like :meth:`complete` but parse the reply as a JSON object."""
        text = self.complete(prompt, max_tokens=max_tokens)
        try:
            parsed = json.loads(_strip_fences(text))
        except json.JSONDecodeError as e:
            raise ReasonerUnavailableError(f"Reply was not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ReasonerUnavailableError("Reply was not a JSON object")
        return parsed


def _strip_fences(text: str) -> str:
    """Models sometimes wrap JSON in a ```json fence."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()
