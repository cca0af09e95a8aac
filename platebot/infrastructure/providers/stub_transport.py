"""Stub transport for local development and testing.

Logs outbound messages instead of sending them and keeps the most recent
ones in memory so tests can assert on what the bot said.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 1000


@dataclass(frozen=True)
class SentMessage:
    """One outbound message as seen by the stub."""

    conversation_id: str
    kind: str  # "text" | "buttons" | "list"
    text: str
    options: Dict[str, str] = field(default_factory=dict)
    button_label: Optional[str] = None


class StubTransport:
    """Stub implementation of ITransport recording recent sends.

    Args:
        history_limit: Messages kept; the oldest are dropped first
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self.sent: Deque[SentMessage] = deque(maxlen=history_limit)

    async def __aenter__(self) -> "StubTransport":
        """Enter async context (no-op for stub)."""
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Exit async context (no-op for stub)."""
        return None

    async def send_text(self, conversation_id: str, text: str) -> None:
        self._record(SentMessage(conversation_id, "text", text))

    async def send_buttons(
        self, conversation_id: str, text: str, buttons: Mapping[str, str]
    ) -> None:
        self._record(SentMessage(conversation_id, "buttons", text, dict(buttons)))

    async def send_list_menu(
        self,
        conversation_id: str,
        text: str,
        button_label: str,
        rows: Mapping[str, str],
        row_limit: int = 10,
    ) -> None:
        kept = dict(list(rows.items())[:row_limit])
        self._record(SentMessage(conversation_id, "list", text, kept, button_label))

    def _record(self, message: SentMessage) -> None:
        logger.info(
            "Stub transport message",
            conversation_id=message.conversation_id,
            kind=message.kind,
            text=message.text,
            options=list(message.options),
        )
        self.sent.append(message)

    def messages_for(self, conversation_id: str) -> List[SentMessage]:
        return [m for m in self.sent if m.conversation_id == conversation_id]

    def texts_for(self, conversation_id: str) -> List[str]:
        return [m.text for m in self.messages_for(conversation_id)]

    def clear(self) -> None:
        """Clear all recorded messages (for testing)."""
        self.sent.clear()
