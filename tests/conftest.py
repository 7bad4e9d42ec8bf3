import asyncio
import time

import pytest

from nlip.core.dispatcher import ProtocolDispatcher
from nlip.core.errors import BackendError
from nlip.core.orchestrator import RedirectOrchestrator
from nlip.llm.provider_config import NlipSettings
from nlip.memory.conversation_store import ConversationStore


class FakeBackend:
    """Stands in for the Ollama capability; records every call."""

    def __init__(self, fail_text: int = 0, fail_image: int = 0, delay: float = 0.0):
        self.fail_text = fail_text
        self.fail_image = fail_image
        self.delay = delay
        self.text_calls = []
        self.image_calls = []

    def generate_text(self, prompt: str) -> str:
        self.text_calls.append(prompt)
        if self.delay:
            time.sleep(self.delay)
        if self.fail_text > 0:
            self.fail_text -= 1
            raise BackendError("OLLAMA HTTP ERROR (500)", backend="Ollama")
        return f"ollama:{prompt}"

    def generate_from_image(self, prompt: str, image_base64: str) -> str:
        self.image_calls.append((prompt, image_base64))
        if self.fail_image > 0:
            self.fail_image -= 1
            raise BackendError("OLLAMA HTTP ERROR (500)", backend="Ollama")
        return f"image:{prompt}"


@pytest.fixture
def settings(tmp_path):
    return NlipSettings(
        ollama_url="http://ollama.test/api/generate",
        text_model="llama3.2",
        vision_model="llava",
        http_timeout_seconds=5,
        backend_timeout_seconds=5,
        retry_attempts=1,
        backoff_seconds=0,
        strict_selection=False,
        save_uploads=False,
        upload_dir=str(tmp_path / "uploads"),
        demo_image_path=None,
        max_conversations=100,
    )


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def store():
    return ConversationStore(max_conversations=100)


@pytest.fixture
def dispatcher(store, fake_backend, settings):
    return ProtocolDispatcher(store, RedirectOrchestrator(fake_backend, settings), settings)


@pytest.fixture
def run():
    return asyncio.run


@pytest.fixture
def make_backend():
    return FakeBackend
