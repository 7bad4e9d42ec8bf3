"""Prompt-to-payload adapter for the default backend.

Architectural role:
    Provides the backend capability consumed by the orchestrator:
    `generate_text(prompt)` and `generate_from_image(prompt, image_base64)`.
    This module builds Ollama payloads and delegates transport to
    `nlip.llm.client`.

Determinism:
    Payload construction is deterministic for fixed inputs and settings.
    Generated output is not.
"""

from typing import Protocol

from nlip.llm.client import send_request
from nlip.llm.provider_config import NlipSettings


class GenerativeBackend(Protocol):
    """Capability exposed by a backend the router can call in-process."""

    def generate_text(self, prompt: str) -> str:
        ...

    def generate_from_image(self, prompt: str, image_base64: str) -> str:
        ...


class OllamaBackend:
    """Default backend served by a local Ollama instance."""

    def __init__(self, settings: NlipSettings):
        self.settings = settings

    def generate_text(self, prompt: str) -> str:
        payload = {
            "model": self.settings.text_model,
            "prompt": prompt,
            "stream": False,
        }
        return send_request(payload, self.settings)

    def generate_from_image(self, prompt: str, image_base64: str) -> str:
        """Ask the vision model about one base64-encoded image.

        Ollama expects raw base64 without a `data:` URI prefix; any such prefix
        is stripped here.
        """
        if image_base64.startswith("data:") and "," in image_base64:
            image_base64 = image_base64.split(",", 1)[1]

        payload = {
            "model": self.settings.vision_model,
            "prompt": prompt,
            "images": [image_base64],
            "stream": False,
        }
        return send_request(payload, self.settings)
