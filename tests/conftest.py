"""Test configuration and fixtures."""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from context_keeper.db.base import Store
from context_keeper.integrations.anthropic import AnthropicClient


@pytest.fixture
def store() -> Store:
    """Fresh in-memory database for each test.

    All sessions share one connection, so open them one after another.
    """
    s = Store("sqlite:///:memory:")
    s.create_all()
    yield s
    s.dispose()


@pytest.fixture
def file_store(tmp_path) -> Store:
    """File-backed database for tests that use several threads."""
    s = Store(f"sqlite:///{tmp_path / 'context_keeper.db'}", busy_timeout=30.0)
    s.create_all()
    yield s
    s.dispose()


def anthropic_reply(text: str) -> Dict[str, Any]:
    """Body of a Messages API response carrying one text block."""
    return {
        "id": "msg_test",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text}],
    }


@pytest.fixture
def make_client() -> Callable[..., AnthropicClient]:
    """Build an AnthropicClient whose HTTP calls are answered locally.

    ``reply`` may be a dict (sent back as JSON text), a plain string, or an
    int status code for an error response. Requests are recorded on
    ``client.requests``. ``on_request`` runs before each reply is sent.
    """

    def _make(reply: Any, on_request: Optional[Callable[[httpx.Request], None]] = None) -> AnthropicClient:
        requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if on_request is not None:
                on_request(request)
            if isinstance(reply, int):
                return httpx.Response(reply, json={"error": {"type": "overloaded_error"}})
            text = reply if isinstance(reply, str) else json.dumps(reply)
            return httpx.Response(200, json=anthropic_reply(text))

        client = AnthropicClient(api_key="test-key", transport=httpx.MockTransport(handler))
        client.requests = requests
        return client

    return _make
