"""
Tests for ConversationEngine.

Covers the state machine transitions, duplicate suppression, failure
isolation and the user-visible copy of each outcome.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from conftest import ScriptedVision

from platebot.application.conversation import messages
from platebot.application.conversation.engine import ConversationEngine
from platebot.domain.conversation.session import ConversationState, EditCursor
from platebot.domain.meal.recognition.models import FoodItem, PlateAnalysis
from platebot.domain.shared.errors import (
    MediaDownloadError,
    RecognitionError,
    TransportError,
)
from platebot.infrastructure.providers.stub_transport import StubTransport
from platebot.infrastructure.session.in_memory_session_store import InMemorySessionStore

USER = "5511999990000"


async def _start_review(engine: ConversationEngine, events) -> None:
    await engine.handle(events.image())


async def _start_edit(engine: ConversationEngine, events, index: int = 0) -> None:
    await engine.handle(events.image())
    await engine.handle(events.button(messages.EDIT_ANALYSIS_ID))
    await engine.handle(events.list_row(f"edit_item_{index}"))


class TestImage:
    @pytest.mark.asyncio
    async def test_photo_creates_pending_analysis(
        self, engine, events, sessions: InMemorySessionStore, transport: StubTransport
    ) -> None:
        await engine.handle(events.image())

        assert await sessions.get_state(USER) is ConversationState.AWAITING_DECISION
        sent = transport.messages_for(USER)
        assert [m.text for m in sent[:2]] == [messages.PHOTO_RECEIVED, messages.ANALYZING]
        assert sent[-1].kind == "buttons"
        assert list(sent[-1].options) == ["confirm_analysis", "edit_analysis"]
        assert "• *Arroz branco* (~150 g)" in sent[-1].text

    @pytest.mark.asyncio
    async def test_vision_receives_downloaded_bytes(self, engine, events, vision) -> None:
        await engine.handle(events.image())

        content, mime_type = vision.calls[0]
        assert content.startswith(b"\xff\xd8")
        assert mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_empty_result_not_identified(
        self, engine_factory, events, sessions, transport
    ) -> None:
        engine = engine_factory(ScriptedVision([]))

        await engine.handle(events.image())

        assert transport.texts_for(USER)[-1] == messages.NOT_IDENTIFIED
        assert await sessions.get_state(USER) is ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_vision_failure(self, engine_factory, events, sessions, transport) -> None:
        engine = engine_factory(ScriptedVision(RecognitionError("no content")))

        await engine.handle(events.image())

        assert transport.texts_for(USER)[-1] == messages.ANALYSIS_FAILED
        assert await sessions.get_state(USER) is ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_unexpected_vision_error(self, engine_factory, events, transport) -> None:
        engine = engine_factory(ScriptedVision(RuntimeError("boom")))

        await engine.handle(events.image())

        assert transport.texts_for(USER)[-1] == messages.ANALYSIS_FAILED

    @pytest.mark.asyncio
    async def test_vision_timeout(self, engine_factory, events, transport) -> None:
        class SlowVision:
            async def analyze(self, content: bytes, mime_type: str):
                await asyncio.sleep(5)

        engine = engine_factory(SlowVision())

        await engine.handle(events.image())

        assert transport.texts_for(USER)[-1] == messages.ANALYSIS_FAILED

    @pytest.mark.asyncio
    async def test_media_failure_skips_vision(
        self, engine_factory, events, vision, transport
    ) -> None:
        media = AsyncMock()
        media.download.side_effect = MediaDownloadError("404")
        engine = engine_factory(vision, media=media)

        await engine.handle(events.image())

        assert vision.calls == []
        assert transport.texts_for(USER) == [messages.PHOTO_RECEIVED, messages.ANALYSIS_FAILED]

    @pytest.mark.asyncio
    async def test_failed_new_photo_keeps_previous_analysis(
        self, engine_factory, events, sessions, rice: FoodItem
    ) -> None:
        engine = engine_factory(ScriptedVision([rice], RecognitionError("bad")))

        await engine.handle(events.image())
        before = await sessions.get_pending(USER)
        await engine.handle(events.image())

        assert await sessions.get_pending(USER) == before

    @pytest.mark.asyncio
    async def test_new_photo_during_edit_drops_cursor(
        self, engine, events, sessions, transport
    ) -> None:
        await _start_edit(engine, events)
        first = await sessions.get_pending(USER)

        await engine.handle(events.image())

        assert await sessions.get_state(USER) is ConversationState.AWAITING_DECISION
        assert (await sessions.get_pending(USER)).analysis_id != first.analysis_id

        transport.clear()
        await engine.handle(events.text("200"))
        assert transport.texts_for(USER) == [messages.ONBOARDING]


class TestEditFlow:
    @pytest.mark.asyncio
    async def test_edit_button_shows_list(self, engine, events, transport) -> None:
        await _start_review(engine, events)

        await engine.handle(events.button(messages.EDIT_ANALYSIS_ID))

        menu = transport.messages_for(USER)[-1]
        assert menu.kind == "list"
        assert menu.button_label == messages.LIST_BUTTON_LABEL
        assert list(menu.options) == [
            "edit_item_0",
            "edit_item_1",
            "edit_item_2",
            "confirm_analysis",
        ]

    @pytest.mark.asyncio
    async def test_select_item_prompts_weight(self, engine, events, sessions, transport) -> None:
        await _start_edit(engine, events, index=1)

        assert await sessions.get_state(USER) is ConversationState.AWAITING_WEIGHT_VALUE
        cursor = await sessions.get_edit_cursor(USER)
        assert cursor.item_index == 1
        assert "*Feijão carioca*" in transport.texts_for(USER)[-1]

    @pytest.mark.asyncio
    async def test_weight_reply_updates_item(self, engine, events, sessions, transport) -> None:
        await _start_edit(engine, events)
        before = await sessions.get_pending(USER)

        await engine.handle(events.text("200"))

        after = await sessions.get_pending(USER)
        assert after.items[0].estimated_grams == 200.0
        assert after.items[1:] == before.items[1:]
        assert after.analysis_id == before.analysis_id
        assert await sessions.get_state(USER) is ConversationState.AWAITING_DECISION

        sent = transport.messages_for(USER)
        assert sent[-2].text == "✅ *Arroz branco* atualizado para *200g*."
        assert sent[-1].kind == "list"

    @pytest.mark.asyncio
    async def test_invalid_weight_changes_nothing(
        self, engine, events, sessions, transport
    ) -> None:
        await _start_edit(engine, events)
        before = await sessions.get_pending(USER)

        await engine.handle(events.text("abc"))

        assert transport.texts_for(USER)[-1] == messages.INVALID_WEIGHT
        assert await sessions.get_pending(USER) == before
        assert await sessions.get_state(USER) is ConversationState.AWAITING_WEIGHT_VALUE

    @pytest.mark.asyncio
    async def test_out_of_range_selection(self, engine, events, sessions, transport) -> None:
        await _start_review(engine, events)
        before = await sessions.get_pending(USER)

        await engine.handle(events.list_row("edit_item_5"))

        assert transport.texts_for(USER)[-1] == messages.INVALID_SELECTION
        assert await sessions.get_pending(USER) == before
        assert await sessions.get_state(USER) is ConversationState.AWAITING_DECISION

    @pytest.mark.asyncio
    async def test_malformed_selection(self, engine, events, transport) -> None:
        await _start_review(engine, events)

        await engine.handle(events.list_row("edit_item_x"))

        assert transport.texts_for(USER)[-1] == messages.INVALID_SELECTION

    @pytest.mark.asyncio
    async def test_selection_without_pending_expires(
        self, engine, events, sessions, transport
    ) -> None:
        await engine.handle(events.list_row("edit_item_0"))

        assert transport.texts_for(USER) == [messages.EXPIRED]
        assert await sessions.get_state(USER) is ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_stale_cursor_expires(self, engine, events, sessions, transport) -> None:
        await _start_review(engine, events)
        await sessions.set_edit_cursor(USER, EditCursor(analysis_id="superseded", item_index=0))

        await engine.handle(events.text("200"))

        assert transport.texts_for(USER)[-1] == messages.EXPIRED
        assert await sessions.get_state(USER) is ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_edit_button_without_pending_expires(self, engine, events, transport) -> None:
        await engine.handle(events.button(messages.EDIT_ANALYSIS_ID))

        assert transport.texts_for(USER) == [messages.EXPIRED]

    @pytest.mark.asyncio
    async def test_text_when_idle_onboards(self, engine, events, transport) -> None:
        await engine.handle(events.text("oi"))

        assert transport.texts_for(USER) == [messages.ONBOARDING]

    @pytest.mark.asyncio
    async def test_text_while_awaiting_decision_onboards(
        self, engine, events, sessions, transport
    ) -> None:
        await _start_review(engine, events)
        before = await sessions.get_pending(USER)

        await engine.handle(events.text("200"))

        assert transport.texts_for(USER)[-1] == messages.ONBOARDING
        assert await sessions.get_pending(USER) == before

    @pytest.mark.asyncio
    async def test_unknown_reply_ids_are_ignored(self, engine, events, transport) -> None:
        await engine.handle(events.button("something_else"))
        await engine.handle(events.list_row("something_else"))

        assert not transport.sent


class TestConfirm:
    @pytest.mark.asyncio
    async def test_confirm_sends_breakdown_and_clears(
        self, engine, events, sessions, transport
    ) -> None:
        await _start_review(engine, events)

        await engine.handle(events.button(messages.CONFIRM_ANALYSIS_ID))

        texts = transport.texts_for(USER)
        assert texts[-2] == messages.CALCULATING
        assert texts[-1].startswith("*Análise Nutricional*")
        assert "*Arroz branco - 150g*\n  Calorias: 195 kcal" in texts[-1]
        assert await sessions.get_state(USER) is ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_confirm_from_list_row(self, engine, events, sessions) -> None:
        await _start_review(engine, events)

        await engine.handle(events.list_row(messages.CONFIRM_ANALYSIS_ID))

        assert await sessions.get_state(USER) is ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_confirm_without_pending(self, engine, events, transport) -> None:
        await engine.handle(events.button(messages.CONFIRM_ANALYSIS_ID))

        assert transport.texts_for(USER) == [messages.NO_PENDING_ANALYSIS]

    @pytest.mark.asyncio
    async def test_lookup_failures_still_confirm(
        self, engine_factory, vision, events, sessions, transport
    ) -> None:
        lookup = AsyncMock()
        lookup.lookup.side_effect = RuntimeError("USDA down")
        engine = engine_factory(vision, lookup=lookup)
        await engine.handle(events.image())

        await engine.handle(events.button(messages.CONFIRM_ANALYSIS_ID))

        breakdown = transport.texts_for(USER)[-1]
        assert breakdown.count("_(Sem dados nutricionais)_") == 3
        assert "*Total analisado*:\n  Calorias: 0 kcal" in breakdown
        assert await sessions.get_state(USER) is ConversationState.IDLE


class TestDeduplication:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", ["image", "text", "button", "list_row", "unsupported"])
    async def test_replay_has_no_effect(self, engine, events, sessions, transport, kind) -> None:
        await _start_edit(engine, events)
        build = {
            "image": lambda: events.image(event_id="dup"),
            "text": lambda: events.text("250", event_id="dup"),
            "button": lambda: events.button(messages.EDIT_ANALYSIS_ID, event_id="dup"),
            "list_row": lambda: events.list_row("edit_item_1", event_id="dup"),
            "unsupported": lambda: events.unsupported("audio", event_id="dup"),
        }[kind]

        await engine.handle(build())
        state = await sessions.get_state(USER)
        pending = await sessions.get_pending(USER)
        sent = len(transport.sent)

        await engine.handle(build())

        assert await sessions.get_state(USER) is state
        assert await sessions.get_pending(USER) == pending
        assert len(transport.sent) == sent

    @pytest.mark.asyncio
    async def test_replay_after_window_is_processed(
        self, engine, events, transport, clock
    ) -> None:
        await engine.handle(events.text("oi", event_id="dup"))
        clock.advance(601)

        await engine.handle(events.text("oi", event_id="dup"))

        assert transport.texts_for(USER) == [messages.ONBOARDING, messages.ONBOARDING]


class TestIsolation:
    @pytest.mark.asyncio
    async def test_transport_failures_are_swallowed(
        self, engine_factory, vision, events, sessions
    ) -> None:
        transport = AsyncMock()
        transport.send_text.side_effect = TransportError("502")
        transport.send_buttons.side_effect = TransportError("502")
        engine = engine_factory(vision, transport=transport)

        await engine.handle(events.image())

        assert await sessions.get_state(USER) is ConversationState.AWAITING_DECISION
        transport.send_buttons.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_batch_failure_does_not_affect_others(
        self, engine_factory, vision, events, transport
    ) -> None:
        class FailingStore(InMemorySessionStore):
            async def get_state(self, conversation_id: str) -> ConversationState:
                if conversation_id == "bad":
                    raise RuntimeError("store failure")
                return await super().get_state(conversation_id)

        engine = engine_factory(vision, sessions=FailingStore())

        await engine.handle_batch(
            [
                events.text("oi", conversation_id="bad"),
                events.text("oi", conversation_id="good"),
            ]
        )

        assert transport.texts_for("good") == [messages.ONBOARDING]
        assert transport.texts_for("bad") == []

    @pytest.mark.asyncio
    async def test_conversations_are_independent(self, engine, events, sessions) -> None:
        await engine.handle_batch(
            [events.image(conversation_id="a"), events.text("oi", conversation_id="b")]
        )

        assert await sessions.get_state("a") is ConversationState.AWAITING_DECISION
        assert await sessions.get_state("b") is ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_same_conversation_events_do_not_interleave(
        self, engine_factory, events, transport, rice: FoodItem
    ) -> None:
        class SlowVision:
            async def analyze(self, content: bytes, mime_type: str) -> PlateAnalysis:
                await asyncio.sleep(0.1)
                return PlateAnalysis(items=(rice,))

        engine = engine_factory(SlowVision())

        await engine.handle_batch([events.image(), events.text("oi")])

        sent = transport.messages_for(USER)
        assert [m.kind for m in sent] == ["text", "text", "buttons", "text"]
        assert sent[-1].text == messages.ONBOARDING

    @pytest.mark.asyncio
    async def test_empty_batch(self, engine, transport) -> None:
        await engine.handle_batch([])

        assert not transport.sent


class TestUnsupported:
    @pytest.mark.asyncio
    async def test_unsupported_kind_gets_photos_only(
        self, engine, events, sessions, transport
    ) -> None:
        await _start_review(engine, events)
        before = await sessions.get_pending(USER)

        await engine.handle(events.unsupported("audio"))

        assert transport.texts_for(USER)[-1] == messages.PHOTOS_ONLY
        assert await sessions.get_pending(USER) == before


class TestRiceScenario:
    @pytest.mark.asyncio
    async def test_edit_then_confirm(
        self, engine_factory, events, sessions, transport, rice: FoodItem
    ) -> None:
        engine = engine_factory(ScriptedVision([rice]))

        await engine.handle(events.image())
        assert "(~150 g)" in transport.messages_for(USER)[-1].text

        await engine.handle(events.button(messages.EDIT_ANALYSIS_ID))
        await engine.handle(events.list_row("edit_item_0"))
        await engine.handle(events.text("200"))
        await engine.handle(events.button(messages.CONFIRM_ANALYSIS_ID))

        breakdown = transport.texts_for(USER)[-1]
        assert "*Arroz branco - 200g*\n  Calorias: 260 kcal" in breakdown
        assert breakdown.endswith("  Gorduras: 0,6 g")
        assert await sessions.get_state(USER) is ConversationState.IDLE
