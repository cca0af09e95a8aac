"""One-shot analysis endpoint.

Runs recognition and nutrient enrichment on an uploaded photo and returns the
confirmed breakdown as JSON, without any chat session. Useful for checking the
vision and lookup adapters in isolation.
"""

import asyncio
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from platebot.application.nutrition.enrichment_pipeline import EnrichmentPipeline
from platebot.domain.meal.recognition.ports import IVisionAnalyzer
from platebot.infrastructure.config import Settings

logger = structlog.get_logger(__name__)

# Maximum upload size: 5MB
MAX_FILE_SIZE = 5 * 1024 * 1024

DEFAULT_MIME_TYPE = "image/jpeg"

router = APIRouter(prefix="/ai", tags=["analysis"])


def get_vision(request: Request) -> IVisionAnalyzer:
    return request.app.state.vision


def get_pipeline(request: Request) -> EnrichmentPipeline:
    return request.app.state.pipeline


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.post("/analyze")
async def analyze_image(
    file: UploadFile = File(..., alias="image", description="Meal photo"),
    vision: IVisionAnalyzer = Depends(get_vision),
    pipeline: EnrichmentPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Recognize and enrich a meal photo in one call.

    Args:
        file: Multipart part named ``image``

    Returns:
        FullAnalysis as JSON (items in recognition order, plus totals)

    Raises:
        HTTPException: 400 for an empty upload, 413 above 5MB, 502 when
            recognition fails or times out

    Example:
        ```bash
        curl -X POST http://localhost:8080/ai/analyze -F "image=@plate.jpg"
        ```
    """
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty image upload")
    if len(content) > MAX_FILE_SIZE:
        max_mb = MAX_FILE_SIZE / 1024 / 1024
        raise HTTPException(status_code=413, detail=f"File too large. Maximum size: {max_mb}MB")

    mime_type = file.content_type or DEFAULT_MIME_TYPE
    logger.info(
        "Analyze request",
        file_name=file.filename,
        mime_type=mime_type,
        size_bytes=len(content),
    )

    try:
        analysis = await asyncio.wait_for(
            vision.analyze(content, mime_type),
            timeout=settings.vision_timeout_seconds,
        )
    except asyncio.TimeoutError as e:
        logger.warning("Analyze recognition timed out", timeout=settings.vision_timeout_seconds)
        raise HTTPException(status_code=502, detail="Image recognition timed out") from e
    except Exception as e:
        logger.error("Analyze recognition failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=502, detail=f"Image recognition failed: {e}") from e

    result = await pipeline.enrich(analysis.items)
    logger.info("Analyze completed", item_count=len(result.items), found=result.found_count())
    return result.model_dump()
