"""
Shared pytest fixtures for the CodeLens test suite.

Provides an event recorder standing in for the websocket broadcast, a fake
provider completion, and an orchestrator wired to both so tests never touch
the screen, the network or the real screenshot folder.
"""

import asyncio
import json
from typing import Any, List, Optional, Tuple

import pytest

from codelens.llm.gateway import ProviderGateway
from codelens.services.orchestrator import AnalysisOrchestrator
from codelens.services.screenshots import CaptureSlotRing

PROVIDER_ENV_VARS = (
    "OPENAI_API_KEY",
    "OPENROUTER_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "OLLAMA_HOST",
    "AI_PROVIDER",
    "AI_MODEL",
    "CODELENS_ENV_FILE",
)

FAKE_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

CODE_REPLY = json.dumps({
    "code": "def add(a, b):\n    return a + b",
    "summary": "Adds two numbers",
    "timeComplexity": "O(1)",
    "spaceComplexity": "O(1)",
    "language": "Python",
})

GENERAL_REPLY = json.dumps({
    "answer": "42",
    "explanation": "Six times seven",
    "test": "Multiply 6 by 7",
})


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class EventRecorder:
    """Async callable recording (type, content) pairs like broadcast_message."""

    def __init__(self):
        self.events: List[Tuple[str, Any]] = []

    async def __call__(self, message_type: str, content: Any = ""):
        self.events.append((message_type, content))

    def types(self) -> List[str]:
        return [t for t, _ in self.events]

    def of(self, message_type: str) -> List[Any]:
        return [c for t, c in self.events if t == message_type]

    def clear(self):
        self.events.clear()


class FakeComplete:
    """
    Stand-in for clients.complete.

    Returns ``reply`` (or raises ``error``). When ``gate`` is set the call
    blocks until the test releases it.
    """

    def __init__(self, reply: str = CODE_REPLY, error: Optional[BaseException] = None):
        self.reply = reply
        self.error = error
        self.calls: List[dict] = []
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()

    async def __call__(self, provider, model, system_prompt, user_prompt, images):
        self.calls.append({
            "provider": provider,
            "model": model,
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "images": list(images),
        })
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """No provider credentials leak in from (or out to) the environment."""
    for name in PROVIDER_ENV_VARS:
        # setenv first so monkeypatch restores the original value on teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture
def openai_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-1234567890")
    return "sk-test-1234567890"


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def fake_complete():
    return FakeComplete()


@pytest.fixture
def ring(tmp_path):
    return CaptureSlotRing(folder=str(tmp_path / "screenshots"))


@pytest.fixture
def make_image(tmp_path):
    """Write an image file of a given size and return its path."""

    def _make(name: str = "shot.png", size: int = len(FAKE_PNG)) -> str:
        path = tmp_path / name
        if size == len(FAKE_PNG):
            path.write_bytes(FAKE_PNG)
        else:
            with open(path, "wb") as f:
                f.truncate(size)
        return str(path)

    return _make


@pytest.fixture
def orchestrator(ring, recorder, fake_complete, openai_key):
    """Orchestrator with a fake grab, a fake provider call and no delays."""
    return AnalysisOrchestrator(
        gateway=ProviderGateway(complete=fake_complete, timeout=5),
        emit=recorder,
        ring=ring,
        grab=lambda: FAKE_PNG,
        debounce_delay=0.01,
        hide_delay=0,
    )
