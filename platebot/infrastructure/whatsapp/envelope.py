"""
WhatsApp webhook envelope decoding.

Typed (pydantic) view of the Cloud API webhook payload, reduced to
``InboundEvent`` values. Decoding fails closed per message: a malformed
message is logged and dropped without affecting its siblings.

Payload shape (abridged):
    {
      "object": "whatsapp_business_account",
      "entry": [{
        "changes": [{
          "field": "messages",
          "value": {
            "messages": [{"id": "wamid...", "from": "5511...", "type": "text",
                          "text": {"body": "120"}}],
            "statuses": [...]
          }
        }]
      }]
    }
"""

import json
from typing import Any, Dict, List, Optional, Tuple, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from platebot.domain.conversation.events import (
    EventKind,
    EventPayload,
    ImagePayload,
    InboundEvent,
    ReplyPayload,
    TextPayload,
    UnsupportedPayload,
)
from platebot.domain.shared.errors import EnvelopeError

logger = structlog.get_logger(__name__)

MESSAGES_FIELD = "messages"
UNSUPPORTED_TYPES = frozenset({"audio", "video", "document", "sticker", "location", "contacts"})


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TextBody(_Lenient):
    body: str = ""


class MediaRef(_Lenient):
    id: str = ""
    mime_type: Optional[str] = None


class ReplyRef(_Lenient):
    id: str = ""
    title: Optional[str] = None


class InteractiveBody(_Lenient):
    type: str = ""
    button_reply: Optional[ReplyRef] = None
    list_reply: Optional[ReplyRef] = None


class WebhookMessage(_Lenient):
    """One entry of ``value.messages``."""

    id: str = ""
    sender: str = Field("", alias="from")
    type: str = ""
    text: Optional[TextBody] = None
    image: Optional[MediaRef] = None
    interactive: Optional[InteractiveBody] = None


class ChangeValue(_Lenient):
    # Raw dicts: each message is validated on its own.
    messages: Optional[List[Any]] = None
    statuses: Optional[List[Any]] = None


class Change(_Lenient):
    field: str = ""
    value: ChangeValue = Field(default_factory=ChangeValue)


class Entry(_Lenient):
    changes: List[Change] = Field(default_factory=list)


class WebhookEnvelope(_Lenient):
    object: str = ""
    entry: List[Entry] = Field(default_factory=list)


def decode_envelope(raw: Union[bytes, str, Dict[str, Any]]) -> List[InboundEvent]:
    """
    Decode a webhook body into inbound events.

    Only ``field == "messages"`` changes with a non-empty ``messages`` array
    and no ``statuses`` array are considered. Messages lacking id or sender,
    and message types the bot does not know, are dropped.

    Args:
        raw: Request body (bytes/str JSON) or an already parsed dict

    Returns:
        Events in payload order (possibly empty)

    Raises:
        EnvelopeError: Body is not JSON or not a webhook object
    """
    try:
        data = json.loads(raw) if isinstance(raw, (bytes, str)) else raw
        envelope = WebhookEnvelope.model_validate(data)
    except (ValueError, PydanticValidationError) as e:
        raise EnvelopeError(f"Malformed webhook payload: {e}") from e

    events: List[InboundEvent] = []
    for entry in envelope.entry:
        for change in entry.changes:
            if change.field != MESSAGES_FIELD:
                logger.debug("Ignoring webhook change", field=change.field)
                continue

            value = change.value
            if not value.messages or value.statuses:
                continue

            for raw_message in value.messages:
                event = _decode_message(raw_message)
                if event is not None:
                    events.append(event)

    return events


def _decode_message(raw_message: Any) -> Optional[InboundEvent]:
    try:
        message = WebhookMessage.model_validate(raw_message)
    except PydanticValidationError as e:
        logger.warning("Dropping malformed message", error=str(e))
        return None

    if not message.id or not message.sender:
        logger.warning("Dropping message without id or sender", message_type=message.type)
        return None

    kind_and_payload = _classify(message)
    if kind_and_payload is None:
        logger.info(
            "Dropping message of unknown type",
            event_id=message.id,
            message_type=message.type,
        )
        return None

    kind, payload = kind_and_payload
    return InboundEvent(
        event_id=message.id,
        conversation_id=message.sender,
        kind=kind,
        payload=payload,
    )


def _classify(message: WebhookMessage) -> Optional[Tuple[EventKind, EventPayload]]:
    if message.type == "image":
        if message.image is None or not message.image.id:
            return None
        return EventKind.IMAGE, ImagePayload(
            media_id=message.image.id, mime_type=message.image.mime_type
        )

    if message.type == "text":
        body = message.text.body if message.text else ""
        return EventKind.TEXT, TextPayload(body=body)

    if message.type == "interactive" and message.interactive is not None:
        interactive = message.interactive
        if interactive.type == "button_reply" and interactive.button_reply is not None:
            reply = interactive.button_reply
            return EventKind.INTERACTIVE_BUTTON, ReplyPayload(reply_id=reply.id, title=reply.title)
        if interactive.type == "list_reply" and interactive.list_reply is not None:
            reply = interactive.list_reply
            return EventKind.INTERACTIVE_LIST, ReplyPayload(reply_id=reply.id, title=reply.title)
        return None

    if message.type in UNSUPPORTED_TYPES:
        return EventKind.UNSUPPORTED, UnsupportedPayload(message_type=message.type)

    return None
