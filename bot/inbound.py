"""
Inbound webhook parsing for the WhatsApp Cloud API.

Turns `entry[0].changes[0].value.messages[0]` into an InboundMessage
classified as free text, a menu selection, or unsupported input.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .states import InputKind

logger = logging.getLogger(__name__)


class MalformedPayloadError(Exception):
    """Raised when a webhook body cannot be turned into a message."""


# ── Cloud API payload models ──────────────────────────────────────

class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TextBody(_Model):
    body: str = ""


class ReplyRef(_Model):
    id: str
    title: str = ""


class Interactive(_Model):
    type: str = ""
    button_reply: Optional[ReplyRef] = None
    list_reply: Optional[ReplyRef] = None


class QuickReply(_Model):
    payload: str = ""
    text: str = ""


class WaMessage(_Model):
    sender: str = Field(alias="from", min_length=1)
    id: str = Field(min_length=1)
    type: str = "unknown"
    timestamp: Optional[str] = None
    text: Optional[TextBody] = None
    interactive: Optional[Interactive] = None
    button: Optional[QuickReply] = None


class ContactProfile(_Model):
    name: str = ""


class Contact(_Model):
    wa_id: str = ""
    profile: Optional[ContactProfile] = None


class ChangeValue(_Model):
    messaging_product: str = ""
    contacts: List[Contact] = Field(default_factory=list)
    messages: List[WaMessage] = Field(default_factory=list)
    statuses: List[Any] = Field(default_factory=list)


class Change(_Model):
    field_name: str = Field(default="", alias="field")
    value: ChangeValue


class Entry(_Model):
    id: str = ""
    changes: List[Change] = Field(default_factory=list)


class WebhookPayload(_Model):
    object: str = ""
    entry: List[Entry] = Field(default_factory=list)


# ── Parsed message ────────────────────────────────────────────────

@dataclass(frozen=True)
class InboundMessage:
    """A single inbound unit of input from a sender."""
    sender_id: str
    message_id: str
    kind: InputKind
    message_type: str
    text: Optional[str] = None
    selection_id: Optional[str] = None
    selection_title: Optional[str] = None
    profile_name: Optional[str] = None


def classify(message: WaMessage) -> InboundMessage:
    """Classify a Cloud API message by how the state machine consumes it."""
    kind = InputKind.UNSUPPORTED
    text = selection_id = selection_title = None

    if message.type == "text":
        kind = InputKind.TEXT
        text = message.text.body if message.text else ""
    elif message.type == "interactive" and message.interactive:
        reply = message.interactive.button_reply or message.interactive.list_reply
        if reply:
            kind = InputKind.SELECTION
            selection_id, selection_title = reply.id, reply.title
    elif message.type == "button" and message.button:
        kind = InputKind.SELECTION
        selection_id = message.button.payload or message.button.text
        selection_title = message.button.text

    return InboundMessage(
        sender_id=message.sender,
        message_id=message.id,
        kind=kind,
        message_type=message.type,
        text=text,
        selection_id=selection_id,
        selection_title=selection_title,
    )


def parse_webhook(body: Any) -> Optional[InboundMessage]:
    """
    Extract the first message of a webhook body.

    Returns None for non-message events (delivery statuses etc).

    Raises:
        MalformedPayloadError: If the body has no usable structure or the
            message lacks a sender or id.
    """
    if not isinstance(body, dict):
        raise MalformedPayloadError("Webhook body is not a JSON object")
    try:
        payload = WebhookPayload.model_validate(body)
    except ValidationError as e:
        raise MalformedPayloadError(f"Invalid webhook payload: {e.error_count()} errors") from e

    if not payload.entry or not payload.entry[0].changes:
        raise MalformedPayloadError("Webhook payload has no entry/changes")

    value = payload.entry[0].changes[0].value
    if not value.messages:
        return None

    message = classify(value.messages[0])
    profile = value.contacts[0].profile if value.contacts else None
    if profile and profile.name:
        message = replace(message, profile_name=profile.name)
    return message
