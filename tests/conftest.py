"""Shared test fixtures for all test modules."""

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from tweetrater.llm.transport import CompletionTransport
from tweetrater.models.config import APIConfig, Config
from tweetrater.models.item import Item
from tweetrater.services.kv_store import MemoryStore


def completion_body(content: Optional[str], **choice_fields: Any) -> dict[str, Any]:
    """Non-streaming chat completion response body."""
    choice = {"message": {"role": "assistant", "content": content}, "finish_reason": "stop", "index": 0}
    choice.update(choice_fields)
    return {
        "id": "gen-1",
        "model": "test/model",
        "choices": [choice],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def sse_frames(*deltas: str, done: bool = True) -> str:
    """Streaming response text carrying the given content deltas."""
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": delta}, "index": 0}]})
        for delta in deltas
    ]
    if done:
        lines.append("data: [DONE]")
    return "\n".join(lines) + "\n"


class ScriptedAPI:
    """
    MockTransport handler replaying canned completion responses in order.

    Each response is a dict (200 JSON body), a str (200 event stream text)
    or a (status, text) tuple. The last response repeats once the script
    runs out. GET requests answer with the model list in `models`.
    """

    def __init__(self, *responses: Any, models: Optional[list[dict[str, Any]]] = None):
        self.responses = list(responses)
        self.models = models or []
        self.payloads: list[dict[str, Any]] = []
        self.headers: list[httpx.Headers] = []

    @property
    def calls(self) -> int:
        return len(self.payloads)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"data": {"models": self.models}})

        self.payloads.append(json.loads(request.content))
        self.headers.append(request.headers)
        scripted = self.responses[min(len(self.payloads), len(self.responses)) - 1]

        if isinstance(scripted, dict):
            return httpx.Response(200, json=scripted)
        if isinstance(scripted, str):
            return httpx.Response(200, text=scripted, headers={"content-type": "text/event-stream"})
        status, text = scripted
        return httpx.Response(status, text=text)


def make_transport(handler: Callable[[httpx.Request], httpx.Response]) -> CompletionTransport:
    """CompletionTransport whose HTTP traffic is answered by handler."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CompletionTransport(APIConfig(), client=client)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingPresentation:
    """Presentation that records every indicator update."""

    def __init__(self):
        self.updates: list[tuple[str, Optional[int], str, str]] = []

    def on_indicator_update(self, item_id: str, score: Optional[int], status: str, description: str) -> None:
        self.updates.append((item_id, score, status, description))

    def for_item(self, item_id: str) -> list[tuple[Optional[int], str]]:
        return [(score, status) for i, score, status, _ in self.updates if i == item_id]

    def last(self, item_id: str) -> tuple[Optional[int], str]:
        return self.for_item(item_id)[-1]


@pytest.fixture
def store():
    """Empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def presentation():
    return RecordingPresentation()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def fast_config():
    """Config with a key and no waiting between requests or before processing."""
    return Config(
        api={"api_key": "test-key"},
        model={"model": "test/model"},
        pipeline={
            "min_request_interval": 0.0,
            "processing_delay": 0.0,
            "backoff_unit": 0.0,
            "stream_inactivity_timeout": 0.2,
        },
    )


@pytest.fixture
def make_item():
    """Factory for items with sensible defaults."""
    def _make(item_id: str = "100", **fields: Any) -> Item:
        fields.setdefault("author_handle", "alice")
        fields.setdefault("text", f"Post number {item_id}")
        return Item(item_id=item_id, **fields)
    return _make
