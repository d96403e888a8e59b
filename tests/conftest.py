"""Shared fixtures for SmartBill tests."""

import json
from datetime import date
from decimal import Decimal
from io import BytesIO

import httpx
import pytest
from PIL import Image

from smartbill.config.settings import LLMSettings
from smartbill.models.transaction import Category, Transaction
from smartbill.services.storage import InMemoryStore, StorageWriteError

TODAY = date(2024, 5, 15)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep a developer's own key or config out of the tests."""
    for name in ("SMARTBILL_LLM_API_KEY", "SMARTBILL_LLM_API_URL", "SMARTBILL_STORAGE_PATH"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def llm_settings():
    return LLMSettings(api_url="https://llm.test/v1/chat/completions", api_key=None)


def make_txn(
    amount,
    category=Category.FOOD,
    merchant="测试商户",
    day=TODAY,
    pending=False,
) -> Transaction:
    return Transaction(
        amount=Decimal(str(amount)),
        category=category,
        merchant=merchant,
        date=day,
        need_confirmation=pending,
    )


def completion(content: str, status_code: int = 200) -> httpx.Response:
    """A chat-completions response whose message content is `content`."""
    return httpx.Response(
        status_code,
        json={"choices": [{"message": {"role": "assistant", "content": content}}]},
    )


def model_json(reply="ok", transactions=None, vibe="开心", color="#10b981") -> str:
    return json.dumps(
        {
            "chat_response": reply,
            "transactions": transactions or [],
            "ai_persona": {"vibe_check": vibe, "mood_color": color},
        },
        ensure_ascii=False,
    )


class RecordingTransport:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def image_bytes(size=(64, 48), fmt="PNG", mode="RGB") -> bytes:
    buffer = BytesIO()
    Image.new(mode, size, color="white").save(buffer, format=fmt)
    return buffer.getvalue()


class FlakyStore(InMemoryStore):
    """
    InMemoryStore whose writes can be made to fail.

    `failing` is False (writes succeed), True (every write fails) or a set
    of keys whose writes fail.
    """

    def __init__(self, initial=None):
        super().__init__(initial)
        self.failing = False

    def set(self, key: str, value: str) -> None:
        if self.failing is True or (self.failing and key in self.failing):
            raise StorageWriteError(f"Failed to write {key}")
        super().set(key, value)
