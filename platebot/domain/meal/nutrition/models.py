"""
Nutrition domain models.

Per-100g reference profiles, enriched items and totals.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from platebot.domain.meal.recognition.models import FoodItem

REFERENCE_GRAMS = 100.0


class NutrientProfile100g(BaseModel):
    """
    Macronutrients for a 100 g reference serving.

    Example:
        >>> rice = NutrientProfile100g(calories=130, protein_g=2.7, carbs_g=28.2, fat_g=0.3)
        >>> rice.scale(200.0).calories
        260.0
    """

    model_config = ConfigDict(frozen=True)

    calories: float = Field(0.0, ge=0, description="Energy in kcal per 100 g")
    protein_g: float = Field(0.0, ge=0, description="Protein in g per 100 g")
    carbs_g: float = Field(0.0, ge=0, description="Carbohydrates in g per 100 g")
    fat_g: float = Field(0.0, ge=0, description="Total fat in g per 100 g")

    def scale(self, grams: Optional[float]) -> NutrientProfile100g:
        """
        Scale to an actual portion.

        Missing weight scales to zero instead of failing.

        Args:
            grams: Portion weight in grams, or None

        Returns:
            New profile holding the portion's absolute values
        """
        weight = grams or 0.0
        return NutrientProfile100g(
            calories=self.calories * weight / REFERENCE_GRAMS,
            protein_g=self.protein_g * weight / REFERENCE_GRAMS,
            carbs_g=self.carbs_g * weight / REFERENCE_GRAMS,
            fat_g=self.fat_g * weight / REFERENCE_GRAMS,
        )


class EnrichedFoodItem(BaseModel):
    """
    Food item with scaled nutrients.

    ``found`` separates "no reference data" from a food whose reference
    values are genuinely zero (e.g., water).
    """

    model_config = ConfigDict(frozen=True)

    display_name: str
    lookup_name: str
    estimated_grams: Optional[float] = None
    confidence: Optional[float] = None
    calories_kcal: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    found: bool = False

    @classmethod
    def not_found(cls, item: FoodItem) -> EnrichedFoodItem:
        """Zero-valued item for a failed or empty lookup."""
        return cls(
            display_name=item.display_name,
            lookup_name=item.lookup_name,
            estimated_grams=item.estimated_grams,
            confidence=item.confidence,
        )

    @classmethod
    def from_profile(cls, item: FoodItem, profile: NutrientProfile100g) -> EnrichedFoodItem:
        """Scale a per-100g profile to the item's estimated weight."""
        portion = profile.scale(item.estimated_grams)
        return cls(
            display_name=item.display_name,
            lookup_name=item.lookup_name,
            estimated_grams=item.estimated_grams,
            confidence=item.confidence,
            calories_kcal=portion.calories,
            protein_g=portion.protein_g,
            carbs_g=portion.carbs_g,
            fat_g=portion.fat_g,
            found=True,
        )


class NutritionalTotals(BaseModel):
    """Pointwise sum of nutrients across all enriched items."""

    model_config = ConfigDict(frozen=True)

    calories_kcal: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0

    @classmethod
    def of(cls, items: Iterable[EnrichedFoodItem]) -> NutritionalTotals:
        materialized = list(items)
        return cls(
            calories_kcal=sum(item.calories_kcal for item in materialized),
            protein_g=sum(item.protein_g for item in materialized),
            carbs_g=sum(item.carbs_g for item in materialized),
            fat_g=sum(item.fat_g for item in materialized),
        )


class FullAnalysis(BaseModel):
    """Confirmed analysis: enriched items in input order plus totals."""

    model_config = ConfigDict(frozen=True)

    items: Tuple[EnrichedFoodItem, ...] = ()
    totals: NutritionalTotals = Field(default_factory=NutritionalTotals)

    @classmethod
    def from_items(cls, items: Iterable[EnrichedFoodItem]) -> FullAnalysis:
        materialized = tuple(items)
        return cls(items=materialized, totals=NutritionalTotals.of(materialized))

    def found_count(self) -> int:
        return sum(1 for item in self.items if item.found)
