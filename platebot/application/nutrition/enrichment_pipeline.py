"""
Nutrition Enrichment Pipeline.

Resolves per-100g nutrients for every item of a confirmed plate, scales them
to the item weights and aggregates totals.
"""

import asyncio
import time
from typing import Optional, Sequence

import structlog

from platebot.domain.meal.nutrition.models import (
    EnrichedFoodItem,
    FullAnalysis,
    NutrientProfile100g,
)
from platebot.domain.meal.nutrition.ports import INutrientLookup
from platebot.domain.meal.recognition.models import FoodItem

logger = structlog.get_logger(__name__)

DEFAULT_LOOKUP_TIMEOUT_SECONDS = 15.0


class EnrichmentPipeline:
    """Concurrent fan-out of nutrient lookups.

    Flow:
    1. One lookup task per item, all started together
    2. Each lookup bounded by its own timeout
    3. Failures and timeouts degrade that item to "not found"
    4. Results joined in input order, totals summed

    The pipeline never raises: wall-clock time is that of the slowest lookup.
    """

    def __init__(
        self,
        lookup: INutrientLookup,
        lookup_timeout_seconds: float = DEFAULT_LOOKUP_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize pipeline.

        Args:
            lookup: Nutrient reference provider
            lookup_timeout_seconds: Upper bound for a single lookup
        """
        self._lookup = lookup
        self._timeout = lookup_timeout_seconds

    async def enrich(self, items: Sequence[FoodItem]) -> FullAnalysis:
        """Enrich all items concurrently.

        Args:
            items: Food items of the confirmed analysis

        Returns:
            FullAnalysis whose position i corresponds to items[i]

        Example:
            >>> pipeline = EnrichmentPipeline(StubNutrientLookup())
            >>> result = await pipeline.enrich([rice, beans])
            >>> result.totals.calories_kcal
            412.0
        """
        if not items:
            return FullAnalysis()

        start = time.perf_counter()
        logger.info("Starting nutrient lookup", item_count=len(items))

        # Cancelling the caller cancels the pending lookups with it.
        enriched = await asyncio.gather(*(self._enrich_item(item) for item in items))

        result = FullAnalysis.from_items(enriched)
        logger.info(
            "Nutrient lookup complete",
            item_count=len(items),
            found=result.found_count(),
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )
        return result

    async def _enrich_item(self, item: FoodItem) -> EnrichedFoodItem:
        profile = await self._fetch_profile(item)
        if profile is None:
            logger.warning(
                "No nutrient data",
                item=item.display_name,
                lookup_name=item.lookup_name,
            )
            return EnrichedFoodItem.not_found(item)

        return EnrichedFoodItem.from_profile(item, profile)

    async def _fetch_profile(self, item: FoodItem) -> Optional[NutrientProfile100g]:
        start = time.perf_counter()
        try:
            profile = await asyncio.wait_for(
                self._lookup.lookup(item.lookup_name), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Nutrient lookup timed out",
                item=item.display_name,
                timeout_s=self._timeout,
            )
            return None
        except Exception as e:
            logger.warning(
                "Nutrient lookup failed",
                item=item.display_name,
                error=str(e),
            )
            return None

        logger.debug(
            "Nutrient lookup finished",
            item=item.display_name,
            found=profile is not None,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )
        return profile
