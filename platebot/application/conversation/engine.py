"""
Conversation engine.

Per-user state machine driving photo → review → (edit)* → confirmation.

States (derived from the session, see ConversationState):
- IDLE: waiting for a photo
- AWAITING_DECISION: pending analysis shown with confirm/edit options
- AWAITING_WEIGHT_VALUE: waiting for the new weight of one item

Each event is deduplicated, then handled while holding the conversation
lock, so two events of the same user never interleave.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Mapping, Sequence

import structlog

from platebot.application.conversation import messages
from platebot.application.conversation.parsing import (
    is_edit_item_id,
    parse_edit_index,
    parse_weight,
)
from platebot.application.nutrition.enrichment_pipeline import EnrichmentPipeline
from platebot.domain.conversation.events import (
    EventKind,
    ImagePayload,
    InboundEvent,
    ReplyPayload,
    TextPayload,
    UnsupportedPayload,
)
from platebot.domain.conversation.ports import (
    IDeliveryDeduplicator,
    IMediaDownloader,
    ISessionStore,
    ITransport,
)
from platebot.domain.conversation.session import ConversationState, EditCursor
from platebot.domain.meal.recognition.models import PlateAnalysis
from platebot.domain.meal.recognition.ports import IVisionAnalyzer
from platebot.domain.shared.errors import (
    DomainError,
    ExpiredSessionError,
    InvalidSelectionError,
    InvalidWeightError,
)

logger = structlog.get_logger(__name__)

DEFAULT_ROW_LIMIT = 10
DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class EngineTimeouts:
    """Upper bounds (seconds) for collaborator calls made by the engine."""

    media_seconds: float = 20.0
    vision_seconds: float = 90.0
    transport_seconds: float = 10.0


class ConversationEngine:
    """
    Consumes inbound events and issues outbound chat actions.

    Example:
        >>> engine = ConversationEngine(
        ...     sessions=InMemorySessionStore(),
        ...     deduplicator=InMemoryDeliveryDeduplicator(),
        ...     media=media_client,
        ...     vision=vision_analyzer,
        ...     transport=whatsapp_client,
        ...     pipeline=EnrichmentPipeline(usda_lookup),
        ... )
        >>> await engine.handle_batch(events)
    """

    def __init__(
        self,
        sessions: ISessionStore,
        deduplicator: IDeliveryDeduplicator,
        media: IMediaDownloader,
        vision: IVisionAnalyzer,
        transport: ITransport,
        pipeline: EnrichmentPipeline,
        timeouts: EngineTimeouts = EngineTimeouts(),
        row_limit: int = DEFAULT_ROW_LIMIT,
    ) -> None:
        self._sessions = sessions
        self._deduplicator = deduplicator
        self._media = media
        self._vision = vision
        self._transport = transport
        self._pipeline = pipeline
        self._timeouts = timeouts
        self._row_limit = row_limit

    async def handle_batch(self, events: Sequence[InboundEvent]) -> None:
        """
        Handle a batch of events concurrently.

        A failure while handling one event is logged and never affects the
        others. Events of the same conversation are still serialized by the
        conversation lock.
        """
        if not events:
            return
        await asyncio.gather(*(self._handle_isolated(event) for event in events))

    async def _handle_isolated(self, event: InboundEvent) -> None:
        try:
            await self.handle(event)
        except Exception:
            logger.exception(
                "Event handling failed",
                event_id=event.event_id,
                conversation_id=event.conversation_id,
                kind=event.kind.value,
            )

    async def handle(self, event: InboundEvent) -> None:
        """
        Handle one inbound event.

        Duplicates (same event id within the dedup window) are dropped
        before the conversation lock is taken.
        """
        if not await self._deduplicator.should_process(event.event_id):
            return

        logger.info(
            "Handling event",
            event_id=event.event_id,
            conversation_id=event.conversation_id,
            kind=event.kind.value,
        )

        async with self._sessions.lock(event.conversation_id):
            await self._dispatch(event)

    async def _dispatch(self, event: InboundEvent) -> None:
        conversation_id = event.conversation_id
        payload = event.payload

        if event.kind is EventKind.IMAGE and isinstance(payload, ImagePayload):
            await self._on_image(conversation_id, payload)
        elif event.kind is EventKind.TEXT and isinstance(payload, TextPayload):
            await self._guard_expired(conversation_id, self._on_text(conversation_id, payload.body))
        elif event.kind is EventKind.INTERACTIVE_BUTTON and isinstance(payload, ReplyPayload):
            await self._guard_expired(
                conversation_id, self._on_button(conversation_id, payload.reply_id)
            )
        elif event.kind is EventKind.INTERACTIVE_LIST and isinstance(payload, ReplyPayload):
            await self._guard_expired(
                conversation_id, self._on_list_row(conversation_id, payload.reply_id)
            )
        elif event.kind is EventKind.UNSUPPORTED and isinstance(payload, UnsupportedPayload):
            logger.info(
                "Unsupported message type",
                conversation_id=conversation_id,
                message_type=payload.message_type,
            )
            await self._send_text(conversation_id, messages.PHOTOS_ONLY)
        else:
            logger.warning(
                "Event payload does not match kind",
                event_id=event.event_id,
                kind=event.kind.value,
                payload_type=type(payload).__name__,
            )

    # ── Image ────────────────────────────────────────────────

    async def _on_image(self, conversation_id: str, payload: ImagePayload) -> None:
        await self._send_text(conversation_id, messages.PHOTO_RECEIVED)

        try:
            analysis = await self._analyze_photo(conversation_id, payload)
        except (DomainError, asyncio.TimeoutError) as e:
            logger.warning(
                "Photo analysis failed",
                conversation_id=conversation_id,
                media_id=payload.media_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            await self._send_text(conversation_id, messages.ANALYSIS_FAILED)
            return
        except Exception:
            logger.exception(
                "Unexpected photo analysis error",
                conversation_id=conversation_id,
                media_id=payload.media_id,
            )
            await self._send_text(conversation_id, messages.ANALYSIS_FAILED)
            return

        if analysis.is_empty():
            logger.info("No items recognized", conversation_id=conversation_id)
            await self._send_text(conversation_id, messages.NOT_IDENTIFIED)
            return

        # Replaces any previous analysis and drops a pending edit cursor.
        await self._sessions.set_pending(conversation_id, analysis)
        logger.info(
            "Analysis pending confirmation",
            conversation_id=conversation_id,
            analysis_id=analysis.analysis_id,
            item_count=analysis.item_count(),
        )
        await self._send_buttons(
            conversation_id,
            messages.format_decision_body(analysis),
            messages.DECISION_BUTTONS,
        )

    async def _analyze_photo(
        self, conversation_id: str, payload: ImagePayload
    ) -> PlateAnalysis:
        media = await asyncio.wait_for(
            self._media.download(payload.media_id),
            timeout=self._timeouts.media_seconds,
        )
        await self._send_text(conversation_id, messages.ANALYZING)

        mime_type = media.mime_type or payload.mime_type or DEFAULT_MIME_TYPE
        return await asyncio.wait_for(
            self._vision.analyze(media.content, mime_type),
            timeout=self._timeouts.vision_seconds,
        )

    # ── Text ─────────────────────────────────────────────────

    async def _on_text(self, conversation_id: str, body: str) -> None:
        state = await self._sessions.get_state(conversation_id)
        if state is not ConversationState.AWAITING_WEIGHT_VALUE:
            await self._send_text(conversation_id, messages.ONBOARDING)
            return

        pending = await self._require_pending(conversation_id)
        cursor = await self._sessions.get_edit_cursor(conversation_id)
        if cursor is None or not cursor.applies_to(pending):
            raise ExpiredSessionError(
                f"Edit cursor does not match analysis {pending.analysis_id}"
            )

        try:
            grams = parse_weight(body)
        except InvalidWeightError as e:
            logger.info("Invalid weight reply", conversation_id=conversation_id, error=str(e))
            await self._send_text(conversation_id, messages.INVALID_WEIGHT)
            return

        edited_item = pending.items[cursor.item_index]
        updated = pending.with_item_grams(cursor.item_index, grams)
        await self._sessions.set_pending(conversation_id, updated)
        logger.info(
            "Item weight updated",
            conversation_id=conversation_id,
            item_index=cursor.item_index,
            grams=grams,
        )

        await self._send_text(conversation_id, messages.weight_updated(edited_item, grams))
        await self._send_edit_menu(conversation_id, updated)

    # ── Interactive replies ──────────────────────────────────

    async def _on_button(self, conversation_id: str, reply_id: str) -> None:
        if reply_id == messages.CONFIRM_ANALYSIS_ID:
            await self._confirm(conversation_id)
        elif reply_id == messages.EDIT_ANALYSIS_ID:
            pending = await self._require_pending(conversation_id)
            await self._send_edit_menu(conversation_id, pending)
        else:
            logger.info("Unknown button id", conversation_id=conversation_id, reply_id=reply_id)

    async def _on_list_row(self, conversation_id: str, reply_id: str) -> None:
        if reply_id == messages.CONFIRM_ANALYSIS_ID:
            await self._confirm(conversation_id)
        elif is_edit_item_id(reply_id):
            await self._select_item(conversation_id, reply_id)
        else:
            logger.info("Unknown list row id", conversation_id=conversation_id, reply_id=reply_id)

    async def _select_item(self, conversation_id: str, reply_id: str) -> None:
        pending = await self._require_pending(conversation_id)

        try:
            index = parse_edit_index(reply_id)
            if not pending.has_index(index):
                raise InvalidSelectionError(
                    f"Item index {index} out of range ({pending.item_count()} items)"
                )
        except InvalidSelectionError as e:
            logger.info("Invalid item selection", conversation_id=conversation_id, error=str(e))
            await self._send_text(conversation_id, messages.INVALID_SELECTION)
            return

        await self._sessions.set_edit_cursor(
            conversation_id, EditCursor(analysis_id=pending.analysis_id, item_index=index)
        )
        await self._send_text(conversation_id, messages.weight_prompt(pending.items[index]))

    async def _confirm(self, conversation_id: str) -> None:
        pending = await self._sessions.get_pending(conversation_id)
        if pending is None:
            await self._send_text(conversation_id, messages.NO_PENDING_ANALYSIS)
            return

        await self._send_text(conversation_id, messages.CALCULATING)
        full = await self._pipeline.enrich(pending.items)
        await self._send_text(conversation_id, messages.format_full_analysis(full))
        await self._sessions.clear(conversation_id)

        logger.info(
            "Analysis confirmed",
            conversation_id=conversation_id,
            analysis_id=pending.analysis_id,
            total_kcal=round(full.totals.calories_kcal, 1),
        )

    async def _require_pending(self, conversation_id: str) -> PlateAnalysis:
        pending = await self._sessions.get_pending(conversation_id)
        if pending is None:
            raise ExpiredSessionError("No pending analysis")
        return pending

    async def _guard_expired(self, conversation_id: str, handler: Awaitable[None]) -> None:
        """Run a reply handler; an expired session is cleared and the user told to resend."""
        try:
            await handler
        except ExpiredSessionError as e:
            logger.info("Session expired", conversation_id=conversation_id, reason=str(e))
            await self._sessions.clear(conversation_id)
            await self._send_text(conversation_id, messages.EXPIRED)

    # ── Outbound ─────────────────────────────────────────────

    async def _send_edit_menu(self, conversation_id: str, analysis: PlateAnalysis) -> None:
        await self._deliver(
            conversation_id,
            "list",
            self._transport.send_list_menu(
                conversation_id,
                messages.format_list_body(analysis),
                messages.LIST_BUTTON_LABEL,
                messages.build_edit_rows(analysis, self._row_limit),
                row_limit=self._row_limit,
            ),
        )

    async def _send_text(self, conversation_id: str, text: str) -> None:
        await self._deliver(
            conversation_id, "text", self._transport.send_text(conversation_id, text)
        )

    async def _send_buttons(
        self, conversation_id: str, text: str, buttons: Mapping[str, str]
    ) -> None:
        await self._deliver(
            conversation_id,
            "buttons",
            self._transport.send_buttons(conversation_id, text, buttons),
        )

    async def _deliver(
        self, conversation_id: str, message_type: str, call: Awaitable[None]
    ) -> None:
        """Await an outbound send; failures are logged, never raised."""
        try:
            await asyncio.wait_for(call, timeout=self._timeouts.transport_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Outbound message timed out",
                conversation_id=conversation_id,
                message_type=message_type,
            )
        except Exception as e:
            logger.warning(
                "Outbound message failed",
                conversation_id=conversation_id,
                message_type=message_type,
                error=str(e),
            )
