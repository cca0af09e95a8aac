"""OpenAI vision client - Implements IVisionAnalyzer port.

Key Features:
- Inline image upload (base64 data URL, no public hosting needed)
- Structured outputs (native Pydantic support)
- Circuit breaker (5 failures → 60s timeout)
- Retry logic (exponential backoff)
"""

# mypy: warn-unused-ignores=False

import base64
import time
from typing import Any, Dict, List

import structlog
from circuitbreaker import CircuitBreakerError, circuit
from openai import APIConnectionError, APIError, APITimeoutError, AsyncOpenAI
from openai import RateLimitError as OpenAIRateLimitError
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from platebot.domain.meal.recognition.models import FoodItem, PlateAnalysis
from platebot.domain.shared.errors import (
    RateLimitError,
    RecognitionError,
    ServiceUnavailableError,
    TimeoutError,
)
from platebot.infrastructure.ai.models import PlateRecognitionResponse, VisionFoodItem
from platebot.infrastructure.ai.prompts import (
    PLATE_RECOGNITION_SYSTEM_PROMPT,
    PLATE_RECOGNITION_USER_PROMPT,
)

logger = structlog.get_logger(__name__)


def to_data_url(content: bytes, mime_type: str) -> str:
    """Encode image bytes as a ``data:`` URL accepted by the vision API."""
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class OpenAIVisionAnalyzer:
    """
    OpenAI GPT-4o vision client implementing IVisionAnalyzer port.

    Follows Dependency Inversion Principle:
    - Domain defines IVisionAnalyzer interface (port)
    - Infrastructure provides OpenAIVisionAnalyzer implementation (adapter)

    Example:
        >>> async with OpenAIVisionAnalyzer(api_key="sk-...") as vision:
        ...     analysis = await vision.analyze(image_bytes, "image/jpeg")
        ...     print(f"Recognized {analysis.item_count()} items")
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.2,
        max_tokens: int = 4096,
    ) -> None:
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Vision-capable model with structured outputs
            temperature: Sampling temperature (low for consistent weights)
            max_tokens: Completion token cap
        """
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def __aenter__(self) -> "OpenAIVisionAnalyzer":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self._client.close()

    async def analyze(self, content: bytes, mime_type: str) -> PlateAnalysis:
        """
        Identify food items and portion weights in a plate photo.

        Args:
            content: Raw image bytes
            mime_type: Image MIME type

        Returns:
            PlateAnalysis with a fresh analysis_id; may be empty

        Raises:
            RecognitionError: Model returned no usable content
            RateLimitError: OpenAI rate limit hit
            TimeoutError: OpenAI request timed out
            ServiceUnavailableError: Other OpenAI API failure
        """
        start_time = time.time()
        logger.info(
            "Analyzing plate photo",
            model=self._model,
            mime_type=mime_type,
            size_bytes=len(content),
        )

        try:
            response = await self._structured_completion(to_data_url(content, mime_type))
        except OpenAIRateLimitError as e:
            raise RateLimitError("OpenAI rate limit exceeded") from e
        except APITimeoutError as e:
            raise TimeoutError("OpenAI request timed out") from e
        except APIError as e:
            logger.error("OpenAI API error", error=str(e))
            raise ServiceUnavailableError(f"OpenAI API error: {e}") from e
        except PydanticValidationError as e:
            raise RecognitionError(f"Response does not match schema: {e}") from e
        except CircuitBreakerError as e:
            logger.warning("OpenAI circuit open")
            raise ServiceUnavailableError("OpenAI temporarily unavailable") from e

        analysis = PlateAnalysis(items=tuple(self._to_domain_items(response.items)))

        logger.info(
            "Plate analysis complete",
            analysis_id=analysis.analysis_id,
            item_count=analysis.item_count(),
            processing_time_ms=int((time.time() - start_time) * 1000),
        )
        return analysis

    @circuit(failure_threshold=5, recovery_timeout=60, name="openai_vision")  # type: ignore[misc]
    @retry(  # type: ignore[misc]
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((APIConnectionError, APITimeoutError)),
        reraise=True,
    )
    async def _structured_completion(self, image_url: str) -> PlateRecognitionResponse:
        """
        Execute OpenAI completion with structured output.

        Raises:
            RecognitionError: Empty or refused response
            APIError: On API failures
        """
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": PLATE_RECOGNITION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": PLATE_RECOGNITION_USER_PROMPT},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            },
        ]

        response = await self._client.chat.completions.parse(
            model=self._model,
            messages=messages,  # type: ignore[arg-type]
            response_format=PlateRecognitionResponse,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        usage = response.usage
        if usage:
            logger.info(
                "OpenAI response received",
                model=self._model,
                total_tokens=usage.total_tokens,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
            )

        if not response.choices:
            raise RecognitionError("Model returned no choices")

        message = response.choices[0].message
        if getattr(message, "refusal", None):
            raise RecognitionError(f"Model refused: {message.refusal}")

        parsed = message.parsed
        if not parsed:
            raise RecognitionError("Model returned no usable content")

        return parsed

    @staticmethod
    def _to_domain_items(items: List[VisionFoodItem]) -> List[FoodItem]:
        """Map response items to domain items, skipping unnamed ones."""
        domain_items = []
        for item in items:
            if not item.name_pt.strip() or not item.name_en.strip():
                logger.warning("Skipping unnamed item", reasoning=item.reasoning)
                continue
            domain_items.append(
                FoodItem(
                    display_name=item.name_pt,
                    lookup_name=item.name_en,
                    estimated_grams=item.quantity_grams,
                    confidence=item.confidence,
                )
            )
        return domain_items
