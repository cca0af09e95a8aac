"""
Ports consumed by the conversation engine.

Session state, duplicate suppression, media download and outbound chat
messages. Infrastructure provides the adapters.
"""

from dataclasses import dataclass
from typing import AsyncContextManager, Mapping, Optional, Protocol

from platebot.domain.conversation.session import ConversationState, EditCursor
from platebot.domain.meal.recognition.models import PlateAnalysis


@dataclass(frozen=True)
class DownloadedMedia:
    """Binary content of an inbound attachment."""

    content: bytes
    mime_type: str


class ISessionStore(Protocol):
    """Port for per-conversation session state.

    Operations on one conversation id are linearizable when callers hold
    ``lock(conversation_id)``; different ids never contend.
    """

    def lock(self, conversation_id: str) -> AsyncContextManager[None]:
        """Serialize handling for one conversation."""
        ...

    async def get_pending(self, conversation_id: str) -> Optional[PlateAnalysis]:
        ...

    async def set_pending(self, conversation_id: str, analysis: PlateAnalysis) -> None:
        """Replace the pending analysis and drop any edit cursor."""
        ...

    async def get_edit_cursor(self, conversation_id: str) -> Optional[EditCursor]:
        ...

    async def set_edit_cursor(self, conversation_id: str, cursor: EditCursor) -> None:
        ...

    async def clear_edit_cursor(self, conversation_id: str) -> None:
        ...

    async def clear(self, conversation_id: str) -> None:
        """Drop pending analysis and edit cursor."""
        ...

    async def get_state(self, conversation_id: str) -> ConversationState:
        ...


class IDeliveryDeduplicator(Protocol):
    """Port for at-most-once admission of inbound event ids."""

    async def should_process(self, event_id: str) -> bool:
        """
        Admit an event id once per trailing window.

        Returns:
            True (and records the id) if not seen within the window,
            False for a duplicate
        """
        ...

    def sweep(self) -> int:
        """Remove expired records. Returns the number removed."""
        ...


class IMediaDownloader(Protocol):
    """Port for fetching inbound media."""

    async def download(self, media_ref: str) -> DownloadedMedia:
        """
        Raises:
            MediaDownloadError: If metadata or binary fetch fails
        """
        ...


class ITransport(Protocol):
    """Port for outbound chat messages.

    Raises:
        TransportError: On delivery failure
    """

    async def send_text(self, conversation_id: str, text: str) -> None:
        ...

    async def send_buttons(
        self, conversation_id: str, text: str, buttons: Mapping[str, str]
    ) -> None:
        """Send reply buttons, ``buttons`` maps reply id to label."""
        ...

    async def send_list_menu(
        self,
        conversation_id: str,
        text: str,
        button_label: str,
        rows: Mapping[str, str],
        row_limit: int = 10,
    ) -> None:
        """Send a single-section list menu, ``rows`` maps row id to label.

        Row labels longer than the display limit are truncated with an
        ellipsis, at a word boundary when possible.
        """
        ...
