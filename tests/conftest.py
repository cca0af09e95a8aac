"""Shared fixtures.

In-memory stores, stub adapters and a scripted vision analyzer wired into a
ConversationEngine with short timeouts. No network access.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence, Union

import pytest

from platebot.application.conversation.engine import ConversationEngine, EngineTimeouts
from platebot.application.nutrition.enrichment_pipeline import EnrichmentPipeline
from platebot.domain.conversation.events import (
    EventKind,
    ImagePayload,
    InboundEvent,
    ReplyPayload,
    TextPayload,
    UnsupportedPayload,
)
from platebot.domain.meal.recognition.models import FoodItem, PlateAnalysis
from platebot.infrastructure.cache.in_memory_deduplicator import (
    InMemoryDeliveryDeduplicator,
)
from platebot.infrastructure.providers.stub_media import StubMediaDownloader
from platebot.infrastructure.providers.stub_nutrition import StubNutrientLookup
from platebot.infrastructure.providers.stub_transport import StubTransport
from platebot.infrastructure.session.in_memory_session_store import InMemorySessionStore

RICE_LOOKUP = "Rice, white, long-grain, regular, cooked"
BEANS_LOOKUP = "Beans, pinto, mature seeds, cooked, boiled, without salt"
CHICKEN_LOOKUP = "Chicken, broilers or fryers, breast, meat only, cooked, grilled"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ScriptedVision:
    """IVisionAnalyzer returning queued results (items or exceptions) in order.

    The last entry repeats once the queue is exhausted.
    """

    def __init__(self, *results: Union[Sequence[FoodItem], BaseException]) -> None:
        self._results: List[Union[Sequence[FoodItem], BaseException]] = list(results)
        self.calls: List[tuple] = []

    def push(self, result: Union[Sequence[FoodItem], BaseException]) -> None:
        self._results.append(result)

    async def analyze(self, content: bytes, mime_type: str) -> PlateAnalysis:
        self.calls.append((content, mime_type))
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, BaseException):
            raise result
        return PlateAnalysis(items=tuple(result))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sessions(clock: FakeClock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def deduplicator(clock: FakeClock) -> InMemoryDeliveryDeduplicator:
    return InMemoryDeliveryDeduplicator(window_seconds=600, clock=clock)


@pytest.fixture
def transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def media() -> StubMediaDownloader:
    return StubMediaDownloader()


@pytest.fixture
def lookup() -> StubNutrientLookup:
    return StubNutrientLookup()


@pytest.fixture
def rice() -> FoodItem:
    return FoodItem(
        display_name="Arroz branco",
        lookup_name=RICE_LOOKUP,
        estimated_grams=150.0,
        confidence=0.9,
    )


@pytest.fixture
def beans() -> FoodItem:
    return FoodItem(
        display_name="Feijão carioca",
        lookup_name=BEANS_LOOKUP,
        estimated_grams=100.0,
        confidence=0.8,
    )


@pytest.fixture
def chicken() -> FoodItem:
    return FoodItem(
        display_name="Frango grelhado",
        lookup_name=CHICKEN_LOOKUP,
        estimated_grams=120.0,
        confidence=0.85,
    )


@pytest.fixture
def vision(rice: FoodItem, beans: FoodItem, chicken: FoodItem) -> ScriptedVision:
    """Every photo: rice, beans, chicken."""
    return ScriptedVision([rice, beans, chicken])


@pytest.fixture
def engine_factory(
    sessions: InMemorySessionStore,
    deduplicator: InMemoryDeliveryDeduplicator,
    media: StubMediaDownloader,
    transport: StubTransport,
    lookup: StubNutrientLookup,
) -> Callable[..., ConversationEngine]:
    """Build an engine; keyword overrides replace any collaborator."""

    def _build(vision: Any, **overrides: Any) -> ConversationEngine:
        params: dict = {
            "sessions": sessions,
            "deduplicator": deduplicator,
            "media": media,
            "vision": vision,
            "transport": transport,
            "pipeline": EnrichmentPipeline(overrides.pop("lookup", lookup), 1.0),
            "timeouts": EngineTimeouts(
                media_seconds=1.0, vision_seconds=1.0, transport_seconds=1.0
            ),
        }
        params.update(overrides)
        return ConversationEngine(**params)

    return _build


@pytest.fixture
def engine(
    engine_factory: Callable[..., ConversationEngine], vision: ScriptedVision
) -> ConversationEngine:
    return engine_factory(vision)


class EventFactory:
    """Builds inbound events with unique ids."""

    def __init__(self, conversation_id: str = "5511999990000") -> None:
        self.conversation_id = conversation_id
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"wamid.{self._counter}"

    def image(self, media_id: str = "media-1", **kw: Any) -> InboundEvent:
        return self._event(EventKind.IMAGE, ImagePayload(media_id=media_id), **kw)

    def text(self, body: str, **kw: Any) -> InboundEvent:
        return self._event(EventKind.TEXT, TextPayload(body=body), **kw)

    def button(self, reply_id: str, **kw: Any) -> InboundEvent:
        return self._event(EventKind.INTERACTIVE_BUTTON, ReplyPayload(reply_id=reply_id), **kw)

    def list_row(self, reply_id: str, **kw: Any) -> InboundEvent:
        return self._event(EventKind.INTERACTIVE_LIST, ReplyPayload(reply_id=reply_id), **kw)

    def unsupported(self, message_type: str = "audio", **kw: Any) -> InboundEvent:
        return self._event(EventKind.UNSUPPORTED, UnsupportedPayload(message_type), **kw)

    def _event(
        self,
        kind: EventKind,
        payload: Any,
        event_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> InboundEvent:
        return InboundEvent(
            event_id=event_id or self._next_id(),
            conversation_id=conversation_id or self.conversation_id,
            kind=kind,
            payload=payload,
        )


@pytest.fixture
def events() -> EventFactory:
    return EventFactory()
