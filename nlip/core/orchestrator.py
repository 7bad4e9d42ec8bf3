"""Redirect orchestration: direct answers, fan-out, fan-in, and image answers.

Architectural role:
    Implements the handling strategies the dispatcher routes to. All state is
    read from and written to the `Conversation` passed in by the dispatcher,
    which already holds that conversation's lock.

Phases:
    0. Direct answer: only the default backend is enabled; answer in-process.
    1. Fan-out: store the query, answer from the default backend (when enabled)
       into conversation state, and return a redirect message listing one URI
       per enabled remote backend.
    2. Fan-in: record answers returned by the caller for remote backends and
       return the aggregate message in registry order.

Backend invocation:
    Capability calls are blocking; each one runs in a worker thread under
    `asyncio.wait_for` and is retried with exponential backoff. A call that times
    out is not retried: the worker thread cannot be cancelled and would still be
    running next to the retry. Direct and image answers raise `BackendError`
    after the last attempt. During fan-out a failed default backend is recorded
    as failed and left out of the aggregate.
"""

import asyncio
import base64
import logging

from nlip.core.backends import DEFAULT_BACKEND, REMOTE_BACKEND_NAMES
from nlip.core.errors import AggregationStateError, ArtifactStorageError, BackendError, PayloadError, UnsupportedFormatError
from nlip.core.message import (
    Message,
    is_image_subformat,
    payload_submessages,
    redirect_message,
    text_message,
    token_message,
    uri_message,
)
from nlip.llm.provider_config import DEFAULT_IMAGE_PROMPT, DEMO_IMAGE_PROMPT, NlipSettings
from nlip.llm.service import GenerativeBackend
from nlip.memory.conversation_store import Conversation
from nlip.storage.artifacts import decode_base64_content, save_binary_artifact


logger = logging.getLogger(__name__)

AGGREGATE_CONTENT = "Aggregate response"


class RedirectOrchestrator:
    """Runs the direct, fan-out, fan-in, and image handling strategies."""

    def __init__(self, backend: GenerativeBackend, settings: NlipSettings):
        self.backend = backend
        self.settings = settings

    # ============================================================
    # Backend invocation
    # ============================================================

    def _backoff(self, attempt: int) -> float:
        return self.settings.backoff_seconds * (2 ** attempt)

    async def _call_backend(self, func, *args) -> str:
        """Invoke one blocking capability call with timeout and bounded retry.

        Failed calls are retried up to `retry_attempts` times. A timeout ends
        the loop at once since the abandoned thread keeps running.

        Raises:
            BackendError: Every attempt failed, or one timed out. The last
                failure's detail is kept.
        """
        attempts = max(1, self.settings.retry_attempts)
        timeout = self.settings.backend_timeout_seconds
        name = DEFAULT_BACKEND.name
        last_error: BackendError | None = None

        for attempt in range(attempts):
            logger.info("Calling %s.%s (attempt %d/%d)", name, func.__name__, attempt + 1, attempts)
            try:
                answer = await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
                logger.info("%s answered with %d chars", name, len(answer))
                return answer
            except asyncio.TimeoutError:
                last_error = BackendError(f"{name} did not answer within {timeout:g}s", backend=name)
                logger.warning("%s call failed: %s (not retried)", name, last_error.detail)
                break
            except BackendError as err:
                last_error = err
            except Exception as err:
                logger.exception("%s raised an unexpected error", name)
                last_error = BackendError(f"{name} REQUEST FAILED: {err}", backend=name)

            logger.warning("%s call failed: %s", name, last_error.detail)
            if attempt < attempts - 1:
                await asyncio.sleep(self._backoff(attempt))

        raise last_error

    # ============================================================
    # Phase 0 / 1 / 2
    # ============================================================

    async def direct_answer(self, query: str) -> Message:
        answer = await self._call_backend(self.backend.generate_text, query)
        return text_message(answer)

    async def fan_out(self, conversation: Conversation, query: str) -> Message:
        """Start a multi-backend exchange for `query`.

        The default backend's answer (when enabled) is recorded in conversation
        state only; it is returned to the caller by the later fan-in step.
        """
        conversation.set_query(query)
        selection = conversation.selection

        if selection.default_enabled:
            try:
                answer = await self._call_backend(self.backend.generate_text, query)
            except BackendError as err:
                logger.warning(
                    "Excluding %s from conversation %s aggregate: %s",
                    DEFAULT_BACKEND.name,
                    conversation.identifier,
                    err.detail,
                )
                conversation.record_failure(DEFAULT_BACKEND.name)
            else:
                conversation.record_answer(DEFAULT_BACKEND.name, answer)

        submessages = [token_message(conversation.identifier)]
        for spec in selection.enabled_remote_backends():
            submessages.append(uri_message(spec.redirect_url, spec.name))

        return redirect_message(submessages)

    async def fan_in(self, conversation: Conversation, message: Message) -> Message:
        """Fold remote answers carried by a redirect message into the aggregate.

        Raises:
            AggregationStateError: No fan-out happened in this conversation.
        """
        if not conversation.fanned_out:
            raise AggregationStateError(
                f"Conversation {conversation.identifier} has no query awaiting answers"
            )

        for submessage in payload_submessages(message):
            label = submessage.label
            if label in REMOTE_BACKEND_NAMES:
                conversation.record_answer(label, submessage.content)
            elif label:
                logger.warning("Ignoring answer labeled %r: not a remote backend", label)

        submessages = [
            token_message(conversation.identifier),
            text_message(conversation.query),
        ]
        for name, answer in conversation.current_answers():
            submessages.append(text_message(answer, label=name))

        return text_message(AGGREGATE_CONTENT, submessages=submessages)

    # ============================================================
    # Image answers
    # ============================================================

    async def image_answer(self, message: Message, prompt: str | None = None) -> Message:
        """Answer a prompt about the image carried by a binary message.

        Raises:
            PayloadError: Subformat is not an image type, or the content is not
                base64 while uploads are being saved.
            ArtifactStorageError: Saving the upload failed.
            BackendError: The vision model call failed.
        """
        if not is_image_subformat(message.subformat):
            raise PayloadError("Invalid format or subformat")

        if self.settings.save_uploads:
            data = decode_base64_content(message.content)
            await asyncio.to_thread(
                save_binary_artifact,
                data,
                message.subformat.strip().lower(),
                self.settings.upload_dir,
            )

        answer = await self._call_backend(
            self.backend.generate_from_image,
            prompt if prompt is not None else DEFAULT_IMAGE_PROMPT,
            message.content,
        )
        return text_message(answer)

    async def demo_image_answer(self) -> Message:
        """Describe the configured demo image (legacy `label == "image"` path)."""
        path = self.settings.demo_image_path
        if not path:
            raise UnsupportedFormatError("Image demo is not configured")

        try:
            with open(path, "rb") as f:
                encoded = base64.b64encode(f.read()).decode("ascii")
        except OSError as err:
            logger.exception("Unable to read demo image %s", path)
            raise ArtifactStorageError("Unable to read demo image") from err

        answer = await self._call_backend(self.backend.generate_from_image, DEMO_IMAGE_PROMPT, encoded)
        return text_message(answer)
