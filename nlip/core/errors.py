"""Error taxonomy for NLIP request handling.

Every error raised by the core carries the HTTP status the adapter should
answer with and a client-visible detail string. `nlip.api.http_api` maps them
to `{"error": ..., "details": ...}` JSON bodies in one exception handler.
"""


class NlipError(Exception):
    """Base class for protocol errors surfaced to the caller."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.error)
        self.detail = detail

    def to_payload(self) -> dict:
        payload = {"error": self.error}
        if self.detail:
            payload["details"] = self.detail
        return payload


class PayloadError(NlipError):
    """Malformed or schema-invalid inbound message."""

    status_code = 400
    error = "Invalid request payload"


class AggregationStateError(NlipError):
    """Conversation state does not allow the requested step."""

    status_code = 409
    error = "Conversation state conflict"


class UnsupportedFormatError(NlipError):
    """Message format is recognized but not implemented."""

    status_code = 501
    error = "Format not implemented"


class BackendError(NlipError):
    """A generative backend call failed (network, provider, or decoding)."""

    status_code = 502
    error = "Backend request failed"

    def __init__(self, detail: str = "", backend: str | None = None):
        super().__init__(detail)
        self.backend = backend


class ArtifactStorageError(NlipError):
    """Persisting an uploaded binary artifact failed."""

    status_code = 500
    error = "Unable to save file"


class SelectionUpdateError(NlipError):
    """Backend selection control message could not be applied."""

    status_code = 500
    error = "Backend selection update failed"
