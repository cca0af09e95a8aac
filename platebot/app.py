from __future__ import annotations

# Standard library
import logging as _logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

# Third-party
import structlog
from dotenv import load_dotenv
from fastapi import FastAPI

# Local application imports
from platebot.api.analyze import router as analyze_router
from platebot.api.webhook import router as webhook_router
from platebot.application.conversation.engine import ConversationEngine, EngineTimeouts
from platebot.application.nutrition.enrichment_pipeline import EnrichmentPipeline
from platebot.infrastructure.cache.in_memory_deduplicator import (
    InMemoryDeliveryDeduplicator,
)
from platebot.infrastructure.config import Settings, mask_secret
from platebot.infrastructure.providers.factory import (
    create_media_downloader,
    create_nutrient_lookup,
    create_transport,
    create_vision_analyzer,
)
from platebot.infrastructure.scheduler.housekeeping_job import HousekeepingJob
from platebot.infrastructure.scheduler.scheduler_config import SchedulerManager
from platebot.infrastructure.session.in_memory_session_store import (
    InMemorySessionStore,
)

load_dotenv()


def configure_logging(level: str) -> None:
    """Stdlib logging from LOG_LEVEL, with structlog rendered through it."""
    try:
        _logging.basicConfig(
            level=getattr(_logging, level, _logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    except Exception:  # pragma: no cover
        _logging.basicConfig(level=_logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"], sort_keys=True),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def engine_timeouts(settings: Settings) -> EngineTimeouts:
    return EngineTimeouts(
        media_seconds=settings.media_timeout_seconds,
        vision_seconds=settings.vision_timeout_seconds,
        transport_seconds=settings.transport_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:  # pragma: no cover
    """Application lifecycle: adapters, stores, engine and housekeeping.

    STARTUP (before yield):
        - Enter the adapters' async context managers (HTTP sessions)
        - Build the in-memory stores, the enrichment pipeline and the engine
        - Start the housekeeping scheduler
    SHUTDOWN (after yield):
        - Stop the scheduler
        - Context managers close the HTTP sessions
    """
    settings: Settings = app.state.settings
    logger = structlog.get_logger("startup")

    logger.info(
        "startup.config",
        vision_provider=settings.vision_provider,
        nutrition_provider=settings.nutrition_provider,
        transport_provider=settings.transport_provider,
        openai_key_masked=mask_secret(settings.openai_api_key),
        usda_key_masked=mask_secret(settings.usda_api_key),
        whatsapp_token_masked=mask_secret(settings.whatsapp_token),
    )

    vision_client = create_vision_analyzer(settings)
    lookup_client = create_nutrient_lookup(settings)
    transport_client = create_transport(settings)
    media_client = create_media_downloader(settings)

    async with (
        vision_client as vision,  # type: ignore[attr-defined]
        lookup_client as lookup,  # type: ignore[attr-defined]
        transport_client as transport,  # type: ignore[attr-defined]
        media_client as media,  # type: ignore[attr-defined]
    ):
        sessions = InMemorySessionStore()
        deduplicator = InMemoryDeliveryDeduplicator(window_seconds=settings.dedup_window_seconds)
        pipeline = EnrichmentPipeline(lookup, settings.lookup_timeout_seconds)
        engine = ConversationEngine(
            sessions=sessions,
            deduplicator=deduplicator,
            media=media,
            vision=vision,
            transport=transport,
            pipeline=pipeline,
            timeouts=engine_timeouts(settings),
        )

        app.state.sessions = sessions
        app.state.deduplicator = deduplicator
        app.state.engine = engine
        app.state.vision = vision
        app.state.pipeline = pipeline

        scheduler = SchedulerManager()
        scheduler.initialize(
            HousekeepingJob(deduplicator, sessions, settings.session_idle_ttl_seconds),
            interval_seconds=settings.housekeeping_interval_seconds,
        )
        scheduler.start()
        app.state.scheduler = scheduler

        logger.info(
            "lifespan.ready",
            vision=type(vision).__name__,
            lookup=type(lookup).__name__,
            transport=type(transport).__name__,
            media=type(media).__name__,
            scheduled_jobs=[job["id"] for job in scheduler.get_jobs()],
        )
        try:
            yield
        finally:
            logger.info("lifespan.shutdown")
            scheduler.shutdown(wait=False)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Explicit settings (tests); read from the environment otherwise
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    application = FastAPI(
        title="PlateBot",
        version=settings.app_version,
        lifespan=lifespan,
    )
    application.state.settings = settings

    @application.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @application.get("/version")
    async def version() -> dict[str, str]:
        return {"version": settings.app_version}

    application.include_router(webhook_router)
    application.include_router(analyze_router)
    return application


app = create_app()
