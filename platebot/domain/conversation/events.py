"""Inbound chat events, independent of the transport's wire format."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class EventKind(str, Enum):
    """Kind of inbound message the conversation engine dispatches on."""

    IMAGE = "image"
    TEXT = "text"
    INTERACTIVE_BUTTON = "interactive_button"
    INTERACTIVE_LIST = "interactive_list"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class ImagePayload:
    media_id: str
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class TextPayload:
    body: str


@dataclass(frozen=True)
class ReplyPayload:
    """Button or list-row selection."""

    reply_id: str
    title: Optional[str] = None


@dataclass(frozen=True)
class UnsupportedPayload:
    message_type: str


EventPayload = Union[ImagePayload, TextPayload, ReplyPayload, UnsupportedPayload]


@dataclass(frozen=True)
class InboundEvent:
    """
    One decoded inbound message.

    Attributes:
        event_id: Transport message id, used for duplicate suppression
        conversation_id: Sender identity, key of all per-user state
        kind: Dispatch kind
        payload: Kind-specific content
    """

    event_id: str
    conversation_id: str
    kind: EventKind
    payload: EventPayload
