"""Provider Factory for external services.

Environment-based provider selection with graceful fallback to stubs.
Strategy:
- .env (runtime): VISION_PROVIDER=openai, NUTRITION_PROVIDER=usda,
  TRANSPORT_PROVIDER=whatsapp
- tests: all stub
- Default: stub (safe fallback if env vars not set)

Usage:
    from platebot.infrastructure.providers.factory import (
        create_vision_analyzer,
        create_nutrient_lookup,
        create_transport,
        create_media_downloader,
    )

    settings = Settings.from_env()
    vision = create_vision_analyzer(settings)  # Returns stub or real based on env

All returned providers are async context managers, entered in the app
lifespan.
"""

from platebot.domain.conversation.ports import IMediaDownloader, ITransport
from platebot.domain.meal.nutrition.ports import INutrientLookup
from platebot.domain.meal.recognition.ports import IVisionAnalyzer

from platebot.infrastructure.ai.openai_vision import OpenAIVisionAnalyzer
from platebot.infrastructure.config import Settings
from platebot.infrastructure.providers.stub_media import StubMediaDownloader
from platebot.infrastructure.providers.stub_nutrition import StubNutrientLookup
from platebot.infrastructure.providers.stub_transport import StubTransport
from platebot.infrastructure.providers.stub_vision import StubVisionAnalyzer
from platebot.infrastructure.usda.client import USDANutrientLookup
from platebot.infrastructure.whatsapp.client import WhatsAppClient
from platebot.infrastructure.whatsapp.media_client import WhatsAppMediaClient


def create_vision_analyzer(settings: Settings) -> IVisionAnalyzer:
    """Create vision analyzer based on VISION_PROVIDER.

    Values:
        - "openai": OpenAI vision (requires OPENAI_API_KEY)
        - "stub": Stub analyzer (default)

    Raises:
        ValueError: VISION_PROVIDER=openai without OPENAI_API_KEY
    """
    if settings.vision_provider == "openai":
        if not settings.openai_api_key:
            raise ValueError(
                "VISION_PROVIDER=openai but OPENAI_API_KEY not set. "
                "Set OPENAI_API_KEY in .env or use VISION_PROVIDER=stub"
            )
        return OpenAIVisionAnalyzer(
            api_key=settings.openai_api_key,
            model=settings.openai_vision_model,
        )

    # Default: stub (safe fallback)
    return StubVisionAnalyzer()


def create_nutrient_lookup(settings: Settings) -> INutrientLookup:
    """Create nutrient lookup based on NUTRITION_PROVIDER.

    Values:
        - "usda": USDA FoodData Central (requires AI_USDA_API_KEY)
        - "stub": Stub lookup (default)

    Raises:
        ValueError: NUTRITION_PROVIDER=usda without AI_USDA_API_KEY
    """
    if settings.nutrition_provider == "usda":
        if not settings.usda_api_key:
            raise ValueError(
                "NUTRITION_PROVIDER=usda but AI_USDA_API_KEY not set. "
                "Set AI_USDA_API_KEY in .env or use NUTRITION_PROVIDER=stub"
            )
        return USDANutrientLookup(
            api_key=settings.usda_api_key,
            timeout=settings.lookup_timeout_seconds,
        )

    return StubNutrientLookup()


def _require_whatsapp(settings: Settings) -> None:
    if not settings.whatsapp_token or not settings.phone_number_id:
        raise ValueError(
            "TRANSPORT_PROVIDER=whatsapp but WHATSAPP_TOKEN or WHATSAPP_PHONE_NUMBER_ID "
            "not set. Set them in .env or use TRANSPORT_PROVIDER=stub"
        )


def create_transport(settings: Settings) -> ITransport:
    """Create outbound transport based on TRANSPORT_PROVIDER.

    Values:
        - "whatsapp": WhatsApp Cloud API
        - "stub": Logging/recording transport (default)
    """
    if settings.transport_provider == "whatsapp":
        _require_whatsapp(settings)
        return WhatsAppClient(
            token=settings.whatsapp_token,
            phone_number_id=settings.phone_number_id,
            api_version=settings.graph_api_version,
            timeout=settings.transport_timeout_seconds,
        )

    return StubTransport()


def create_media_downloader(settings: Settings) -> IMediaDownloader:
    """Create media downloader, following TRANSPORT_PROVIDER."""
    if settings.transport_provider == "whatsapp":
        _require_whatsapp(settings)
        return WhatsAppMediaClient(
            token=settings.whatsapp_token,
            api_version=settings.graph_api_version,
            timeout=settings.media_timeout_seconds,
        )

    return StubMediaDownloader()
