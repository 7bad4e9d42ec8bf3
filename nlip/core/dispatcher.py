"""Protocol dispatcher: route one inbound NLIP message to a handling strategy.

Control-flow model (first match wins):
    1. `control` + `label == "LLMs"` -> backend selection update.
    2. `label == "image"` -> legacy demo image path.
    3. `format == redirect` -> fan-in / aggregation.
    4. `format == text` -> image-with-prompt, direct answer, or fan-out.
       `format == binary` -> image answer.
       `authentication`, `structured`, `location`, `generic` -> not implemented.
       Anything else -> payload error.

Conversation resolution:
    The first `token` submessage names the conversation. Token submessages are
    ignored for shape decisions. Without a token the message is served against a
    fresh default-only selection, so only direct and image answers are possible.
    The conversation's lock is held for the whole dispatch.
"""

import logging

from nlip.core.backends import BACKENDS_BY_NAME, BackendSelection
from nlip.core.errors import AggregationStateError, PayloadError, SelectionUpdateError, UnsupportedFormatError
from nlip.core.message import (
    ENGLISH,
    Message,
    MessageFormat,
    describe,
    find_conversation_token,
    payload_submessages,
)
from nlip.core.orchestrator import RedirectOrchestrator
from nlip.llm.provider_config import NlipSettings
from nlip.memory.conversation_store import Conversation, ConversationStore


logger = logging.getLogger(__name__)

SELECTION_LABEL = "LLMs"
DEMO_IMAGE_LABEL = "image"

NOT_IMPLEMENTED_FORMATS = frozenset({
    MessageFormat.AUTHENTICATION,
    MessageFormat.STRUCTURED,
    MessageFormat.LOCATION,
    MessageFormat.GENERIC,
})


class ProtocolDispatcher:
    """Entry point of the core: one call per inbound message."""

    def __init__(self, store: ConversationStore, orchestrator: RedirectOrchestrator, settings: NlipSettings):
        self.store = store
        self.orchestrator = orchestrator
        self.settings = settings

    async def dispatch(self, message: Message) -> Message | None:
        """Handle `message` and return the response message.

        Returns:
            Response message, or `None` for acknowledgement-only control
            messages (selection updates).

        Raises:
            NlipError subclasses, mapped to HTTP statuses by the API adapter.
        """
        logger.info(">>> Request incoming with %s", describe(message))

        identifier = find_conversation_token(message)
        if identifier is None:
            response = await self._route(message, None)
        else:
            conversation = self.store.get(identifier)
            if conversation is None:
                raise AggregationStateError(f"Unknown conversation {identifier}")
            async with conversation.lock:
                response = await self._route(message, conversation)

        if response is not None:
            logger.info("<<< Response outgoing with %s", describe(response))
        return response

    async def _route(self, message: Message, conversation: Conversation | None) -> Message | None:
        if message.is_control and message.label == SELECTION_LABEL:
            return self._update_selection(message, conversation)

        if message.label == DEMO_IMAGE_LABEL:
            return await self.orchestrator.demo_image_answer()

        if message.format == MessageFormat.REDIRECT:
            if conversation is None:
                raise AggregationStateError("Redirect message carries no conversation token")
            if not message.is_control or not message.children()[0].is_token:
                logger.warning(
                    "Redirect for %s is not control=true with a leading token; accepting it",
                    conversation.identifier,
                )
            return await self.orchestrator.fan_in(conversation, message)

        if message.format == MessageFormat.TEXT:
            return await self._handle_text(message, conversation)

        if message.format == MessageFormat.BINARY:
            return await self.orchestrator.image_answer(message)

        if message.format in NOT_IMPLEMENTED_FORMATS:
            raise UnsupportedFormatError(f"Format '{message.format.value}' is not implemented")

        fmt = message.format.value if message.format else None
        raise PayloadError(f"Unsupported message format {fmt!r}")

    async def _handle_text(self, message: Message, conversation: Conversation | None) -> Message:
        submessages = payload_submessages(message)
        if len(submessages) == 1 and submessages[0].format == MessageFormat.BINARY:
            return await self.orchestrator.image_answer(submessages[0], prompt=message.content)

        selection = conversation.selection if conversation is not None else BackendSelection()
        if selection.only_default_enabled():
            return await self.orchestrator.direct_answer(message.content)

        return await self.orchestrator.fan_out(conversation, message.content)

    def _update_selection(self, message: Message, conversation: Conversation | None) -> None:
        """Replace the conversation's backend selection with the requested names.

        Unknown names are logged and skipped, or rejected when
        `strict_selection` is set (leaving the previous selection in place).
        """
        if message.submessages is None:
            raise SelectionUpdateError("LLM selection message carries no submessages")
        if conversation is None:
            raise PayloadError("LLM selection requires a conversation token")

        requested = [
            submessage.content.strip()
            for submessage in payload_submessages(message)
            if submessage.format == MessageFormat.TEXT and submessage.subformat == ENGLISH
        ]
        unknown = [name for name in requested if name not in BACKENDS_BY_NAME]
        if unknown:
            if self.settings.strict_selection:
                raise PayloadError(f"Unknown backend name(s): {', '.join(unknown)}")
            logger.warning("Ignoring unknown backend name(s) in selection: %s", unknown)

        conversation.selection.replace(requested)
        logger.info(
            "Updated LLM configuration for %s: %s",
            conversation.identifier,
            conversation.selection.as_dict(),
        )
        return None
