"""In-memory conversation state, keyed by conversation identifier.

Purpose of this abstraction:
    Hold the in-flight query, per-backend answers, and backend selection of each
    live conversation so fan-out and fan-in requests can be correlated through
    the token submessage without any process-wide conversation globals.

Concurrency model:
    - The identifier index is guarded by a `threading.Lock`.
    - Each `Conversation` owns an `asyncio.Lock`; the dispatcher holds it for
      the whole handling of one message so requests on the same conversation
      are serialized while different conversations proceed concurrently.

Lifecycle:
    `start()` creates an entry with a fresh identifier and default selection.
    `reset(identifier)` retires the old entry and starts a new one. Identifiers
    are uuid4 values, so they are not reused. When the store is full the oldest
    conversation is evicted; nothing is kept for retired identifiers.
"""

import asyncio
import logging
import threading
import uuid
from collections import OrderedDict

from nlip.core.backends import BackendSelection


logger = logging.getLogger(__name__)


class Conversation:
    """State of one logical exchange."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        self.selection = BackendSelection()
        self.query: str | None = None
        self.answers: dict[str, str] = {}
        self.failed: set[str] = set()
        self.lock = asyncio.Lock()

    def set_query(self, text: str) -> None:
        """Store a new fan-out query and forget answers gathered for the last one."""
        self.query = text
        self.answers.clear()
        self.failed.clear()

    def record_answer(self, backend: str, text: str) -> None:
        self.answers[backend] = text
        self.failed.discard(backend)

    def record_failure(self, backend: str) -> None:
        self.answers.pop(backend, None)
        self.failed.add(backend)

    @property
    def fanned_out(self) -> bool:
        return self.query is not None

    def current_answers(self) -> list[tuple[str, str]]:
        """Return (backend, answer) pairs for enabled, non-failed backends.

        Pairs follow registry order. Enabled backends that have not answered yet
        are reported with an empty answer.
        """
        return [
            (spec.name, self.answers.get(spec.name, ""))
            for spec in self.selection.enabled_backends()
            if spec.name not in self.failed
        ]


class ConversationStore:
    """Thread-safe, bounded map of identifier -> `Conversation`."""

    def __init__(self, max_conversations: int = 1000):
        self.max_conversations = max(1, max_conversations)
        self._conversations: "OrderedDict[str, Conversation]" = OrderedDict()
        self._lock = threading.Lock()

    def start(self) -> Conversation:
        with self._lock:
            conversation = Conversation(str(uuid.uuid4()))
            self._conversations[conversation.identifier] = conversation
            while len(self._conversations) > self.max_conversations:
                evicted, _ = self._conversations.popitem(last=False)
                logger.info("Evicted conversation %s (store full)", evicted)
        logger.info("Started conversation %s", conversation.identifier)
        return conversation

    def reset(self, identifier: str | None = None) -> Conversation:
        """Retire `identifier` (when given) and start a fresh conversation."""
        if identifier is not None:
            self.discard(identifier)
        return self.start()

    def get(self, identifier: str) -> Conversation | None:
        with self._lock:
            conversation = self._conversations.get(identifier)
            if conversation is not None:
                self._conversations.move_to_end(identifier)
            return conversation

    def discard(self, identifier: str) -> None:
        with self._lock:
            self._conversations.pop(identifier, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._conversations)

    def __contains__(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._conversations
