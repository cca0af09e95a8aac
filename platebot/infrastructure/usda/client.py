"""USDA FoodData Central client - Implements INutrientLookup port.

Two-step lookup: search by description (top hit) → food detail restricted to
the four macronutrients.

Key Features:
- Circuit breaker (5 failures → 60s timeout)
- Retry logic (exponential backoff)
- Typed errors for rate limiting, timeouts and transport failures
"""

# mypy: warn-unused-ignores=False

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import structlog
from circuitbreaker import CircuitBreakerError, circuit
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from platebot.domain.meal.nutrition.models import NutrientProfile100g
from platebot.domain.shared.errors import (
    NutrientLookupError,
    RateLimitError,
    ServiceUnavailableError,
    TimeoutError,
)

logger = structlog.get_logger(__name__)

# USDA nutrient numbers
NUTRIENT_CALORIES = "208"
NUTRIENT_PROTEIN = "203"
NUTRIENT_CARBS = "205"
NUTRIENT_FAT = "204"

_NUTRIENT_FIELDS = {
    NUTRIENT_CALORIES: "calories",
    NUTRIENT_PROTEIN: "protein_g",
    NUTRIENT_CARBS: "carbs_g",
    NUTRIENT_FAT: "fat_g",
}


def extract_profile(food: Dict[str, Any]) -> Optional[NutrientProfile100g]:
    """
    Map a USDA food detail document to a per-100g profile.

    Args:
        food: ``/food/{fdcId}`` response body

    Returns:
        Profile (missing nutrients default to 0), or None when the document
        has no ``foodNutrients`` array

    Example:
        >>> extract_profile({"foodNutrients": [
        ...     {"nutrient": {"number": "208"}, "amount": 130.0},
        ... ]}).calories
        130.0
    """
    nutrients = food.get("foodNutrients")
    if not isinstance(nutrients, list):
        return None

    values: Dict[str, float] = {}
    for entry in nutrients:
        if not isinstance(entry, dict):
            continue
        number = str((entry.get("nutrient") or {}).get("number", ""))
        field = _NUTRIENT_FIELDS.get(number)
        if field is None:
            continue
        try:
            values[field] = max(float(entry.get("amount") or 0.0), 0.0)
        except (TypeError, ValueError):
            values[field] = 0.0

    return NutrientProfile100g(**values)


class USDANutrientLookup:
    """
    USDA FoodData Central client implementing INutrientLookup port.

    Example:
        >>> async with USDANutrientLookup(api_key) as usda:
        ...     profile = await usda.lookup("Rice, white, long-grain, cooked")
        ...     if profile:
        ...         print(f"Calories: {profile.calories}")
    """

    BASE_URL = "https://api.nal.usda.gov/fdc/v1"

    def __init__(self, api_key: str, timeout: float = 10.0) -> None:
        """
        Initialize USDA client.

        API documentation: https://fdc.nal.usda.gov/api-guide

        Args:
            api_key: USDA FoodData Central API key
            timeout: Total HTTP timeout per request in seconds
        """
        self.api_key = api_key
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "USDANutrientLookup":
        """Async context manager entry."""
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        if self._session:
            await self._session.close()

    async def lookup(self, food_name: str) -> Optional[NutrientProfile100g]:
        """
        Get the per-100g profile for a food description.

        Args:
            food_name: USDA-style description

        Returns:
            NutrientProfile100g, or None if USDA has no match

        Raises:
            RateLimitError: USDA answered 429
            TimeoutError: Request timed out
            NutrientLookupError: Other API or network failure
        """
        fdc_id = await self.search_fdc_id(food_name)
        if fdc_id is None:
            logger.info("USDA no match", query=food_name)
            return None

        profile = await self.get_profile(fdc_id)
        logger.debug(
            "USDA lookup complete", query=food_name, fdc_id=fdc_id, found=profile is not None
        )
        return profile

    async def search_fdc_id(self, query: str) -> Optional[str]:
        """Return the FDC id of the top search hit, or None."""
        params = [("api_key", self.api_key), ("query", query), ("pageSize", "1")]
        data = await self._get_json(f"{self.BASE_URL}/foods/search", params, query=query)
        if data is None:
            return None

        foods = data.get("foods")
        if not isinstance(foods, list) or not foods or not isinstance(foods[0], dict):
            return None

        fdc_id = foods[0].get("fdcId")
        return str(fdc_id) if fdc_id is not None else None

    async def get_profile(self, fdc_id: str) -> Optional[NutrientProfile100g]:
        """Fetch the macronutrient profile of one FDC id."""
        params = [("api_key", self.api_key)] + [
            ("nutrients", number) for number in _NUTRIENT_FIELDS
        ]
        data = await self._get_json(f"{self.BASE_URL}/food/{fdc_id}", params, query=fdc_id)
        if data is None:
            return None
        return extract_profile(data)

    async def _get_json(
        self, url: str, params: List[Tuple[str, str]], query: str
    ) -> Optional[Dict[str, Any]]:
        try:
            status, data = await self._request(url, params)
        except asyncio.TimeoutError as e:
            logger.error("USDA API timeout", query=query)
            raise TimeoutError(f"USDA request timed out: {query}") from e
        except aiohttp.ClientError as e:
            logger.error("USDA API error", query=query, error=str(e))
            raise NutrientLookupError(f"USDA request failed: {e}") from e
        except CircuitBreakerError as e:
            logger.warning("USDA circuit open", query=query)
            raise ServiceUnavailableError("USDA temporarily unavailable") from e

        if status == 429:
            raise RateLimitError("USDA rate limit exceeded")
        if status == 404:
            return None
        if status != 200:
            logger.warning("USDA API warning", status=status, query=query)
            raise NutrientLookupError(f"USDA API error: {status}")

        return data if isinstance(data, dict) else None

    @circuit(failure_threshold=5, recovery_timeout=60, name="usda_lookup")  # type: ignore[misc]
    @retry(  # type: ignore[misc]
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((asyncio.TimeoutError, aiohttp.ClientConnectionError)),
        reraise=True,
    )
    async def _request(self, url: str, params: List[Tuple[str, str]]) -> Tuple[int, Any]:
        if not self._session:
            raise RuntimeError("Client not initialized. Use async context manager.")

        async with self._session.get(url, params=params) as response:
            if response.status != 200:
                return response.status, None
            return response.status, await response.json()
