"""Per-conversation session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from platebot.domain.meal.recognition.models import PlateAnalysis


class ConversationState(str, Enum):
    """
    Conversation state, derived from session content (never stored).

    IDLE: no pending analysis
    AWAITING_DECISION: pending analysis, no edit cursor
    AWAITING_WEIGHT_VALUE: pending analysis and edit cursor
    """

    IDLE = "IDLE"
    AWAITING_DECISION = "AWAITING_DECISION"
    AWAITING_WEIGHT_VALUE = "AWAITING_WEIGHT_VALUE"


@dataclass(frozen=True)
class EditCursor:
    """
    Marks that the next text reply is a new weight for one item.

    Bound to the analysis it was created for: once that analysis is replaced
    or cleared the cursor no longer applies.
    """

    analysis_id: str
    item_index: int

    def applies_to(self, analysis: Optional[PlateAnalysis]) -> bool:
        return (
            analysis is not None
            and analysis.analysis_id == self.analysis_id
            and analysis.has_index(self.item_index)
        )


@dataclass
class Session:
    """Ephemeral state of one conversation."""

    pending_analysis: Optional[PlateAnalysis] = None
    edit_cursor: Optional[EditCursor] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def state(self) -> ConversationState:
        if self.pending_analysis is None:
            return ConversationState.IDLE
        if self.edit_cursor is None:
            return ConversationState.AWAITING_DECISION
        return ConversationState.AWAITING_WEIGHT_VALUE

    def is_empty(self) -> bool:
        return self.pending_analysis is None and self.edit_cursor is None
