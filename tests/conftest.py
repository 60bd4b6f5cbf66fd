"""
Shared fixtures for InfoRx tests.

Upstream capabilities are faked with httpx.MockTransport so no test
touches the network.
"""

import asyncio
import json

import httpx
import pytest

from app.api.middleware import limiter
from app.core.interpretation_client import InterpretationClient
from app.core.speech_client import SpeechSynthesisClient


AMOXICILLIN_INTERPRETATION = {
    "simpleExplanation": "Amoxicillin is an antibiotic that fights bacterial infections.",
    "recommendedActions": ["Take with food", "Complete full course"],
    "medicalAttentionIndicators": ["Rash", "Difficulty breathing"],
}

FAKE_AUDIO = b"ID3\x04\x00\x00fake-mpeg-frames"


class RecordingHandler:
    """MockTransport handler that records requests and can be paused."""

    def __init__(self, respond):
        self.respond = respond
        self.requests = []
        self.gate = None

    def pause(self) -> asyncio.Event:
        self.gate = asyncio.Event()
        return self.gate

    @property
    def calls(self) -> int:
        return len(self.requests)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        return self.respond(request)


def interpretation_client(handler) -> InterpretationClient:
    return InterpretationClient(
        url="http://interpreter.test/api/interpret",
        timeout=5.0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


def speech_client(handler, api_key: str = "test-key") -> SpeechSynthesisClient:
    return SpeechSynthesisClient(
        api_key=api_key,
        base_url="https://speech.test",
        timeout=5.0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


@pytest.fixture(autouse=True)
def disable_rate_limiting():
    """Rate limits are shared across the whole test run; switch them off."""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def interpretation_ok():
    return RecordingHandler(
        lambda request: httpx.Response(200, json=AMOXICILLIN_INTERPRETATION)
    )


@pytest.fixture
def speech_ok():
    return RecordingHandler(
        lambda request: httpx.Response(
            200, content=FAKE_AUDIO, headers={"content-type": "audio/mpeg"}
        )
    )
