"""Provider/runtime configuration for the NLIP router.

Architectural role:
    Centralizes backend endpoint selection, invocation budgets, and feature flags
    consumed by `nlip.llm.client`, `nlip.core.orchestrator`, and `nlip.api`.

Resolution:
    `.env` is loaded at import time. `NlipSettings` field defaults are read from
    the process environment when this module is imported; tests and embedding
    callers construct `NlipSettings(...)` explicitly instead.

Relevant environment variables:
    - `OLLAMA_URL`, `OLLAMA_TEXT_MODEL`, `OLLAMA_VISION_MODEL`
    - `NLIP_HTTP_TIMEOUT_SECONDS`, `NLIP_BACKEND_TIMEOUT_SECONDS`
    - `NLIP_BACKEND_RETRY_ATTEMPTS`, `NLIP_BACKEND_BACKOFF_SECONDS`
    - `NLIP_STRICT_SELECTION`
    - `NLIP_SAVE_UPLOADS`, `NLIP_UPLOAD_DIR`, `NLIP_DEMO_IMAGE_PATH`
    - `NLIP_MAX_CONVERSATIONS`
    - `LOG_LEVEL`
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def env_flag(name: str, default: str = "false") -> bool:
    """Read a boolean feature flag (`1`, `true`, `yes`, `on` enable it)."""
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Local Ollama endpoint serving the default backend.
OLLAMA_URL = os.getenv("OLLAMA_URL", "http://127.0.0.1:11434/api/generate")
OLLAMA_TEXT_MODEL = os.getenv("OLLAMA_TEXT_MODEL", "llama3.2")
OLLAMA_VISION_MODEL = os.getenv("OLLAMA_VISION_MODEL", "llava")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

DEFAULT_IMAGE_PROMPT = "What do you see in this image?"
DEMO_IMAGE_PROMPT = "What do you see in this image"


@dataclass(frozen=True)
class NlipSettings:
    """Runtime settings for one router instance.

    Attributes:
        ollama_url: Ollama `/api/generate` endpoint.
        text_model: Model used for text prompts.
        vision_model: Model used for image prompts.
        http_timeout_seconds: Per-request timeout passed to `requests`.
        backend_timeout_seconds: Upper bound for one capability call, including
            the worker-thread hop.
        retry_attempts: Total attempts per capability call (minimum 1).
        backoff_seconds: Base delay for exponential backoff between attempts.
        strict_selection: Reject unknown backend names in selection updates
            instead of ignoring them.
        save_uploads: Persist decoded binary uploads under `upload_dir`.
        upload_dir: Directory for persisted binary artifacts.
        demo_image_path: Image file served by the legacy `label == "image"` path.
        max_conversations: Upper bound on live conversations kept in memory.
    """

    ollama_url: str = OLLAMA_URL
    text_model: str = OLLAMA_TEXT_MODEL
    vision_model: str = OLLAMA_VISION_MODEL
    http_timeout_seconds: float = float(os.getenv("NLIP_HTTP_TIMEOUT_SECONDS", "120"))
    backend_timeout_seconds: float = float(os.getenv("NLIP_BACKEND_TIMEOUT_SECONDS", "150"))
    retry_attempts: int = int(os.getenv("NLIP_BACKEND_RETRY_ATTEMPTS", "2"))
    backoff_seconds: float = float(os.getenv("NLIP_BACKEND_BACKOFF_SECONDS", "0.5"))
    strict_selection: bool = env_flag("NLIP_STRICT_SELECTION")
    save_uploads: bool = env_flag("NLIP_SAVE_UPLOADS")
    upload_dir: str = os.getenv("NLIP_UPLOAD_DIR", "uploads")
    demo_image_path: str | None = os.getenv("NLIP_DEMO_IMAGE_PATH") or None
    max_conversations: int = int(os.getenv("NLIP_MAX_CONVERSATIONS", "1000"))
