"""Port (interface) for nutrient reference providers.

This port defines the contract that nutrient reference sources
(e.g., USDA FoodData Central) must implement to be used by the domain layer.
"""

from typing import Optional, Protocol

from platebot.domain.meal.nutrition.models import NutrientProfile100g


class INutrientLookup(Protocol):
    """
    Interface for per-100g nutrient reference lookups.

    Implementations can be:
    - USDA FoodData Central client
    - Stub provider (for testing)
    """

    async def lookup(self, food_name: str) -> Optional[NutrientProfile100g]:
        """
        Get the per-100g profile of a food.

        Args:
            food_name: Canonical lookup term (e.g., "Rice, white, cooked")

        Returns:
            NutrientProfile100g if found, None if the reference has no match.
            Ordinary "not found" never raises.

        Raises:
            ExternalServiceError: Implementation-specific network/API errors
        """
        ...
