"""
HTTP API adapter for the NLIP router.

Architectural role:
- Expose the NLIP message endpoint and conversation bootstrap endpoints.
- Parse request JSON into `Message` objects (payload-level validation only).
- Delegate routing to `nlip.core.dispatcher.ProtocolDispatcher`.
- Map `NlipError` subclasses to `{"error": ..., "details": ...}` JSON bodies.

Endpoint responsibilities:
- `POST /nlip/`: handle one protocol message.
- `POST /nlip/start`: start (or reset) a conversation and hand out its token.
- `GET /nlip/backends`: describe the backend registry and, optionally, one
  conversation's selection.

Request lifecycle (`POST /nlip/`):
1. Parse request JSON; invalid JSON -> HTTP 400.
2. Build `Message`; unknown `format` or wrong field types -> HTTP 400.
3. Run the dispatcher while polling for client disconnect; a disconnect
   cancels the in-flight dispatch.
4. Return the response message, or an empty 200 acknowledgement.

Side effects:
- Conversation state lives in the `ConversationStore` attached to `app.state`.
- Backend calls are performed by the orchestrator (local Ollama server).
"""

import asyncio
import json
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from nlip.core.backends import BACKEND_REGISTRY
from nlip.core.dispatcher import ProtocolDispatcher
from nlip.core.errors import AggregationStateError, NlipError, PayloadError
from nlip.core.message import Message, find_conversation_token, text_message, token_message
from nlip.core.orchestrator import RedirectOrchestrator
from nlip.llm.provider_config import NlipSettings
from nlip.llm.service import GenerativeBackend, OllamaBackend
from nlip.memory.conversation_store import ConversationStore


logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.25
CLIENT_CLOSED_REQUEST = 499

START_GREETING = (
    "Conversation started.\n"
    "Include the conversation-id token submessage in every follow-up message.\n"
    "Only the default backend is enabled until an LLMs selection is sent."
)


# ============================================================
# Helpers
# ============================================================

async def _read_json(request: Request, allow_empty: bool = False):
    """Decode the request body as JSON, mapping failures to `PayloadError`."""
    raw = await request.body()
    if not raw.strip():
        if allow_empty:
            return None
        raise PayloadError("Request body is empty")
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise PayloadError(f"Invalid JSON: {err}") from err


async def _run_until_disconnect(request: Request, coro):
    """Await `coro`, cancelling it if the client disconnects first.

    Returns:
        `(True, result)` when the coroutine finished, `(False, None)` when the
        client went away and the work was cancelled.
    """
    task = asyncio.ensure_future(coro)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return True, task.result()
            if await request.is_disconnected():
                logger.info("Client disconnected; cancelling in-flight request.")
                task.cancel()
                return False, None
    finally:
        if not task.done():
            task.cancel()


# ============================================================
# Application factory
# ============================================================

def create_app(
    settings: NlipSettings | None = None,
    backend: GenerativeBackend | None = None,
    store: ConversationStore | None = None,
) -> FastAPI:
    """Build the FastAPI application and wire the core components.

    Args:
        settings: Runtime settings; defaults to environment-derived values.
        backend: Default-backend capability; defaults to `OllamaBackend`.
        store: Conversation store; a new bounded store by default.
    """
    settings = settings or NlipSettings()
    backend = backend or OllamaBackend(settings)
    store = store or ConversationStore(max_conversations=settings.max_conversations)
    dispatcher = ProtocolDispatcher(store, RedirectOrchestrator(backend, settings), settings)

    app = FastAPI(title="NLIP Router")
    app.state.settings = settings
    app.state.store = store
    app.state.dispatcher = dispatcher

    @app.exception_handler(NlipError)
    async def handle_nlip_error(request: Request, exc: NlipError):
        backend_name = getattr(exc, "backend", None)
        if backend_name:
            logger.error("%s %s failed [backend=%s]: %s", request.method, request.url.path, backend_name, exc)
        elif exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.post("/nlip/")
    async def handle_message(request: Request):
        """Handle one NLIP protocol message."""
        message = Message.from_payload(await _read_json(request))

        finished, response = await _run_until_disconnect(request, dispatcher.dispatch(message))
        if not finished:
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        if response is None:
            return Response(status_code=200)
        return JSONResponse(content=response.to_payload())

    @app.post("/nlip/start")
    async def start_conversation(request: Request):
        """Start a conversation; a token submessage in the body resets that one."""
        payload = await _read_json(request, allow_empty=True)
        previous = None
        if payload is not None:
            previous = find_conversation_token(Message.from_payload(payload))

        conversation = store.reset(previous)
        response = text_message(START_GREETING, submessages=[token_message(conversation.identifier)])
        return JSONResponse(content=response.to_payload())

    @app.get("/nlip/backends")
    async def list_backends(conversation_id: str | None = None):
        """Describe registered backends and, optionally, one conversation's selection."""
        body = {
            "backends": [
                {"name": spec.name, "url": spec.redirect_url, "default": spec.default}
                for spec in BACKEND_REGISTRY
            ]
        }
        if conversation_id is not None:
            conversation = store.get(conversation_id)
            if conversation is None:
                raise AggregationStateError(f"Unknown conversation {conversation_id}")
            body["selection"] = conversation.selection.as_dict()
        return body

    return app


app = create_app()
