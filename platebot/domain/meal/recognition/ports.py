"""Port (interface) for vision AI providers.

This port defines the contract that external vision AI providers
(e.g., OpenAI GPT-4o) must implement to be used by the domain layer.
"""

from typing import Protocol

from platebot.domain.meal.recognition.models import PlateAnalysis


class IVisionAnalyzer(Protocol):
    """
    Interface for vision AI providers.

    This port follows the Dependency Inversion Principle:
    - Domain layer defines the interface (port)
    - Infrastructure layer implements it (adapter)
    """

    async def analyze(self, content: bytes, mime_type: str) -> PlateAnalysis:
        """
        Identify food items and portion weights in a plate photo.

        Args:
            content: Raw image bytes
            mime_type: Image MIME type (e.g., "image/jpeg")

        Returns:
            PlateAnalysis with items in the order the model listed them.
            May be empty when nothing edible was recognized.

        Raises:
            RecognitionError: Model returned no usable content
            ExternalServiceError: Network or API failure
        """
        ...
