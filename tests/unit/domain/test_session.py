"""
Tests for conversation session state derivation and edit cursors.
"""

from platebot.domain.conversation.session import ConversationState, EditCursor, Session
from platebot.domain.meal.recognition.models import FoodItem, PlateAnalysis


def _analysis(count: int = 2) -> PlateAnalysis:
    return PlateAnalysis(
        items=tuple(
            FoodItem(display_name=f"Item {i}", lookup_name=f"item {i}") for i in range(count)
        )
    )


class TestSessionState:
    def test_empty_session_is_idle(self) -> None:
        session = Session()

        assert session.state is ConversationState.IDLE
        assert session.is_empty()

    def test_pending_without_cursor_awaits_decision(self) -> None:
        session = Session(pending_analysis=_analysis())

        assert session.state is ConversationState.AWAITING_DECISION

    def test_pending_with_cursor_awaits_weight(self) -> None:
        analysis = _analysis()
        session = Session(
            pending_analysis=analysis,
            edit_cursor=EditCursor(analysis_id=analysis.analysis_id, item_index=0),
        )

        assert session.state is ConversationState.AWAITING_WEIGHT_VALUE


class TestEditCursor:
    def test_applies_to_same_analysis(self) -> None:
        analysis = _analysis()
        cursor = EditCursor(analysis_id=analysis.analysis_id, item_index=1)

        assert cursor.applies_to(analysis)
        # Edits keep the id, so the cursor still applies.
        assert cursor.applies_to(analysis.with_item_grams(0, 50.0))

    def test_does_not_apply_to_new_analysis(self) -> None:
        cursor = EditCursor(analysis_id=_analysis().analysis_id, item_index=0)

        assert not cursor.applies_to(_analysis())

    def test_does_not_apply_out_of_range_or_none(self) -> None:
        analysis = _analysis(count=2)
        cursor = EditCursor(analysis_id=analysis.analysis_id, item_index=2)

        assert not cursor.applies_to(analysis)
        assert not cursor.applies_to(None)
