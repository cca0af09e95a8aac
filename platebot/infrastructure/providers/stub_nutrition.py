"""Stub nutrient lookup for local development and testing.

Returns USDA-like per-100g profiles without calling external APIs.
"""

from typing import Dict, Optional

from platebot.domain.meal.nutrition.models import NutrientProfile100g

# Per 100 g, keyed by lowercase lookup name
STUB_PROFILES: Dict[str, NutrientProfile100g] = {
    "rice, white, long-grain, regular, cooked": NutrientProfile100g(
        calories=130.0, protein_g=2.7, carbs_g=28.2, fat_g=0.3
    ),
    "beans, pinto, mature seeds, cooked, boiled, without salt": NutrientProfile100g(
        calories=143.0, protein_g=9.0, carbs_g=26.2, fat_g=0.7
    ),
    "chicken, broilers or fryers, breast, meat only, cooked, grilled": NutrientProfile100g(
        calories=151.0, protein_g=30.5, carbs_g=0.0, fat_g=3.2
    ),
    "potatoes, french fried, frozen, oven-heated": NutrientProfile100g(
        calories=172.0, protein_g=2.9, carbs_g=27.7, fat_g=6.1
    ),
    "lettuce, cos or romaine, raw": NutrientProfile100g(
        calories=17.0, protein_g=1.2, carbs_g=3.3, fat_g=0.3
    ),
    "egg, whole, cooked, fried": NutrientProfile100g(
        calories=196.0, protein_g=13.6, carbs_g=0.8, fat_g=14.8
    ),
}


class StubNutrientLookup:
    """
    Stub implementation of INutrientLookup.

    Known names return a hardcoded profile; anything else is "not found".
    """

    async def __aenter__(self) -> "StubNutrientLookup":
        """Enter async context (no-op for stub)."""
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Exit async context (no-op for stub)."""
        return None

    async def lookup(self, food_name: str) -> Optional[NutrientProfile100g]:
        return STUB_PROFILES.get(food_name.strip().lower())
