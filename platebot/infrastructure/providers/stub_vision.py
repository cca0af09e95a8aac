"""Stub vision analyzer for local development and testing.

Returns a fixed plate without calling external APIs.
"""

from platebot.domain.meal.recognition.models import FoodItem, PlateAnalysis

STUB_PLATE_ITEMS = (
    FoodItem(
        display_name="Arroz branco",
        lookup_name="Rice, white, long-grain, regular, cooked",
        estimated_grams=150.0,
        confidence=0.92,
    ),
    FoodItem(
        display_name="Feijão carioca",
        lookup_name="Beans, pinto, mature seeds, cooked, boiled, without salt",
        estimated_grams=100.0,
        confidence=0.88,
    ),
    FoodItem(
        display_name="Frango grelhado",
        lookup_name="Chicken, broilers or fryers, breast, meat only, cooked, grilled",
        estimated_grams=120.0,
        confidence=0.85,
    ),
)


class StubVisionAnalyzer:
    """
    Stub implementation of IVisionAnalyzer.

    Every photo yields the same rice, beans and chicken plate with a fresh
    analysis id. Supports async context manager protocol for lifespan
    compatibility.
    """

    async def __aenter__(self) -> "StubVisionAnalyzer":
        """Enter async context (no-op for stub)."""
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Exit async context (no-op for stub)."""
        return None

    async def analyze(self, content: bytes, mime_type: str) -> PlateAnalysis:
        return PlateAnalysis(items=STUB_PLATE_ITEMS)
