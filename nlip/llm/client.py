"""Ollama transport client for the default backend.

Architectural role:
    Executes HTTP requests against the local Ollama server and normalizes its
    non-streaming `/api/generate` response into plain text.

Model invocation flow:
    `service.OllamaBackend.generate_*` -> `send_request(payload, settings)` ->
    `requests.post` -> `response` field of the JSON body.

Retry behavior:
    None here. Each call is attempted once with `settings.http_timeout_seconds`;
    bounded retries and the outer timeout are applied by the orchestrator.

Failure handling model:
    Transport, HTTP status, and decoding failures are raised as `BackendError`
    carrying a provider-labeled detail string.
"""

import requests

from nlip.core.errors import BackendError
from nlip.llm.provider_config import NlipSettings


PROVIDER_LABEL = "OLLAMA"


def _build_http_error_detail(err: requests.exceptions.RequestException) -> str:
    """Build provider-labeled HTTP error text with an optional status code."""
    status_code = None
    if getattr(err, "response", None) is not None:
        status_code = getattr(err.response, "status_code", None)

    if status_code:
        return f"{PROVIDER_LABEL} HTTP ERROR ({status_code}): {err}"
    return f"{PROVIDER_LABEL} HTTP ERROR: {err}"


def send_request(payload: dict, settings: NlipSettings) -> str:
    """Send one non-streaming generate request and return the generated text.

    Args:
        payload: Ollama `/api/generate` body (`model`, `prompt`, optional
            `images`, `stream=False`).
        settings: Endpoint and timeout configuration.

    Returns:
        Generated text with surrounding whitespace removed.

    Raises:
        BackendError: Request failed, provider returned an error status or an
            `error` field, or the body could not be decoded.
    """
    try:
        response = requests.post(
            settings.ollama_url,
            headers={"Content-Type": "application/json"},
            json=payload,
            timeout=settings.http_timeout_seconds,
        )
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as err:
        raise BackendError(_build_http_error_detail(err), backend="Ollama") from err
    except ValueError as err:
        raise BackendError(f"{PROVIDER_LABEL} RESPONSE NOT JSON", backend="Ollama") from err

    if not isinstance(data, dict):
        raise BackendError(f"{PROVIDER_LABEL} UNEXPECTED RESPONSE", backend="Ollama")

    if data.get("error"):
        raise BackendError(f"{PROVIDER_LABEL} ERROR: {data['error']}", backend="Ollama")

    text = data.get("response")
    if not isinstance(text, str):
        raise BackendError(f"{PROVIDER_LABEL} RESPONSE MISSING TEXT", backend="Ollama")

    return text.strip()
