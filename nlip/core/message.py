"""NLIP protocol message model.

Architectural role:
    Defines the single recursive entity exchanged over the protocol and the
    helpers used by the dispatcher/orchestrator to build outgoing messages.

Validation scope:
    Only structural checks happen here (object shape, field types, known
    `format` values). Format-specific rules (image subformats, redirect token
    placement) belong to the handling strategy that consumes the message.

Round trip:
    `to_payload()` dumps only the fields that were set when the message was
    built, so a parsed message serializes back to the shape it came from.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, ValidationError

from nlip.core.errors import PayloadError


class MessageFormat(str, Enum):
    TEXT = "text"
    BINARY = "binary"
    STRUCTURED = "structured"
    AUTHENTICATION = "authentication"
    LOCATION = "location"
    GENERIC = "generic"
    REDIRECT = "redirect"
    TOKEN = "token"


ENGLISH = "english"
URI = "uri"
CONVERSATION_ID = "conversation-id"
IMAGE_SUBFORMATS = frozenset({"jpeg", "jpg", "png", "gif", "bmp"})


def is_image_subformat(subformat: str | None) -> bool:
    """Return whether a binary subformat names a supported image type."""
    return (subformat or "").strip().lower() in IMAGE_SUBFORMATS


class Message(BaseModel):
    """One NLIP message, optionally carrying nested submessages."""

    model_config = ConfigDict(extra="ignore")

    format: MessageFormat | None = None
    subformat: StrictStr = ""
    content: StrictStr = ""
    label: StrictStr | None = None
    control: StrictBool | None = None
    submessages: list["Message"] | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "Message":
        """Build a message from a JSON-decoded object.

        Raises:
            PayloadError: Payload is not an object, a field has the wrong type,
                or `format` is not a known value.
        """
        if not isinstance(payload, dict):
            raise PayloadError("Message must be a JSON object")
        try:
            return cls.model_validate(payload)
        except ValidationError as err:
            raise PayloadError(_summarize_validation_error(err)) from err

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude_unset=True)

    @property
    def is_control(self) -> bool:
        return self.control is True

    @property
    def is_token(self) -> bool:
        return self.format == MessageFormat.TOKEN

    def children(self) -> list["Message"]:
        return list(self.submessages or [])


def _summarize_validation_error(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location or 'message'}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


# ============================================================
# Builders for outgoing messages
# ============================================================

def text_message(content: str, label: str | None = None, submessages: list[Message] | None = None) -> Message:
    fields: dict[str, Any] = {
        "format": MessageFormat.TEXT,
        "subformat": ENGLISH,
        "content": content,
    }
    if label is not None:
        fields["label"] = label
    if submessages is not None:
        fields["submessages"] = submessages
    return Message(**fields)


def token_message(conversation_id: str) -> Message:
    return Message(format=MessageFormat.TOKEN, subformat=CONVERSATION_ID, content=conversation_id)


def uri_message(url: str, label: str) -> Message:
    return Message(format=MessageFormat.STRUCTURED, subformat=URI, content=url, label=label)


def redirect_message(submessages: list[Message]) -> Message:
    return Message(
        control=True,
        format=MessageFormat.REDIRECT,
        subformat=ENGLISH,
        content="redirect message",
        submessages=submessages,
    )


def find_conversation_token(message: Message) -> str | None:
    """Return the conversation identifier from the first token submessage."""
    for submessage in message.children():
        if submessage.is_token:
            identifier = submessage.content.strip()
            return identifier or None
    return None


def payload_submessages(message: Message) -> list[Message]:
    """Return submessages with token (correlation) submessages removed."""
    return [submessage for submessage in message.children() if not submessage.is_token]


def describe(message: Message, limit: int = 120) -> str:
    """Short one-line rendering used in request/response logs."""
    fmt = message.format.value if message.format else None
    content = message.content
    if len(content) > limit:
        content = content[:limit] + "..."
    return f"Format: '{fmt}', Subformat: '{message.subformat}', Content '{content}'"
