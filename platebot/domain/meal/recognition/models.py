"""
Domain models for food recognition.

Items proposed by the vision model for one plate photo, before nutrient
enrichment.
"""

from __future__ import annotations

import uuid
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FoodItem(BaseModel):
    """
    Single food item recognized from a plate photo.

    Attributes:
        display_name: User-facing name, localized (e.g., "Arroz branco")
        lookup_name: Canonical English term sent to the nutrient reference
            (e.g., "Rice, white, long-grain, cooked"). Stable across edits.
        estimated_grams: Estimated portion weight, editable by the user
        confidence: Recognition confidence (0.0 - 1.0)

    Example:
        >>> item = FoodItem(
        ...     display_name="Arroz branco",
        ...     lookup_name="Rice, white, cooked",
        ...     estimated_grams=150.0,
        ...     confidence=0.9,
        ... )
        >>> item.with_grams(200.0).estimated_grams
        200.0
    """

    model_config = ConfigDict(frozen=True)

    display_name: str = Field(..., min_length=1, description="Localized name")
    lookup_name: str = Field(..., min_length=1, description="Reference lookup term")
    estimated_grams: Optional[float] = Field(None, ge=0, description="Portion in grams")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Confidence")

    @field_validator("display_name", "lookup_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Ensure not just whitespace."""
        if not v.strip():
            raise ValueError("Field cannot be empty or whitespace")
        return v.strip()

    def with_grams(self, grams: float) -> FoodItem:
        """Return a copy with a new portion weight."""
        return self.model_copy(update={"estimated_grams": grams})


class PlateAnalysis(BaseModel):
    """
    Pending, not yet confirmed analysis of one plate.

    Position matters: list-menu rows and edit cursors refer to items by
    index. Edits keep ``analysis_id``; a new photo produces a new one.
    """

    model_config = ConfigDict(frozen=True)

    analysis_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    items: Tuple[FoodItem, ...] = ()

    def is_empty(self) -> bool:
        return not self.items

    def item_count(self) -> int:
        return len(self.items)

    def has_index(self, index: int) -> bool:
        return 0 <= index < len(self.items)

    def with_item_grams(self, index: int, grams: float) -> PlateAnalysis:
        """
        Return a copy with the weight of one item replaced.

        Args:
            index: Position of the item
            grams: New weight in grams

        Raises:
            IndexError: If index is outside the item list
        """
        if not self.has_index(index):
            raise IndexError(f"Item index {index} out of range ({len(self.items)} items)")

        items = list(self.items)
        items[index] = items[index].with_grams(grams)
        return self.model_copy(update={"items": tuple(items)})
