"""Configuration utilities for infrastructure layer."""

import os
from dataclasses import dataclass
from typing import Optional


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _get_int(name: str, default: int) -> int:
    return int(_get_float(name, default))


def mask_secret(value: Optional[str]) -> Optional[str]:
    """
    Mask a secret for logging.

    Example:
        >>> mask_secret("sk-abcdef123456")
        'sk-a...3456'
    """
    if not value:
        return None
    if len(value) > 8:
        return value[:4] + "..." + value[-4:]
    return "***"


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings read from environment variables.

    Example .env:
        WHATSAPP_VERIFY_TOKEN=my-verify-token
        WHATSAPP_TOKEN=EAAG...
        WHATSAPP_PHONE_NUMBER_ID=1234567890
        TRANSPORT_PROVIDER=whatsapp
        VISION_PROVIDER=openai
        NUTRITION_PROVIDER=usda
    """

    verify_token: str = ""
    whatsapp_token: str = ""
    phone_number_id: str = ""
    graph_api_version: str = "v21.0"
    openai_api_key: Optional[str] = None
    openai_vision_model: str = "gpt-4o"
    usda_api_key: Optional[str] = None
    vision_provider: str = "stub"
    nutrition_provider: str = "stub"
    transport_provider: str = "stub"
    dedup_window_seconds: int = 600
    session_idle_ttl_seconds: int = 86400
    housekeeping_interval_seconds: int = 60
    media_timeout_seconds: float = 20.0
    vision_timeout_seconds: float = 90.0
    lookup_timeout_seconds: float = 15.0
    transport_timeout_seconds: float = 10.0
    log_level: str = "INFO"
    app_version: str = "0.0.0-dev"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the current environment.

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        return cls(
            verify_token=os.getenv("WHATSAPP_VERIFY_TOKEN", ""),
            whatsapp_token=os.getenv("WHATSAPP_TOKEN", ""),
            phone_number_id=os.getenv("WHATSAPP_PHONE_NUMBER_ID", ""),
            graph_api_version=os.getenv("GRAPH_API_VERSION", "v21.0"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_vision_model=os.getenv("OPENAI_VISION_MODEL", "gpt-4o"),
            usda_api_key=os.getenv("AI_USDA_API_KEY"),
            vision_provider=os.getenv("VISION_PROVIDER", "stub").lower(),
            nutrition_provider=os.getenv("NUTRITION_PROVIDER", "stub").lower(),
            transport_provider=os.getenv("TRANSPORT_PROVIDER", "stub").lower(),
            dedup_window_seconds=_get_int("DEDUP_WINDOW_SECONDS", 600),
            session_idle_ttl_seconds=_get_int("SESSION_IDLE_TTL_SECONDS", 86400),
            housekeeping_interval_seconds=_get_int("HOUSEKEEPING_INTERVAL_SECONDS", 60),
            media_timeout_seconds=_get_float("MEDIA_TIMEOUT_SECONDS", 20.0),
            vision_timeout_seconds=_get_float("VISION_TIMEOUT_SECONDS", 90.0),
            lookup_timeout_seconds=_get_float("LOOKUP_TIMEOUT_SECONDS", 15.0),
            transport_timeout_seconds=_get_float("TRANSPORT_TIMEOUT_SECONDS", 10.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            app_version=os.getenv("APP_VERSION", "0.0.0-dev"),
        )
