"""WhatsApp media download - Implements IMediaDownloader port.

Two-step Graph API download: media id → metadata (url, mime_type) → bytes.
Both requests carry the bearer token.
"""

# mypy: warn-unused-ignores=False

import asyncio
from typing import Any, Dict, Optional

import aiohttp
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from platebot.domain.conversation.ports import DownloadedMedia
from platebot.domain.shared.errors import MediaDownloadError
from platebot.infrastructure.whatsapp.client import GRAPH_BASE_URL

logger = structlog.get_logger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


class WhatsAppMediaClient:
    """
    Graph API media downloader.

    Example:
        >>> async with WhatsAppMediaClient(token) as client:
        ...     media = await client.download("1234567890")
        ...     len(media.content), media.mime_type
    """

    def __init__(self, token: str, api_version: str = "v21.0", timeout: float = 20.0) -> None:
        self.token = token
        self.api_version = api_version
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "WhatsAppMediaClient":
        """Async context manager entry."""
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        if self._session:
            await self._session.close()

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def download(self, media_ref: str) -> DownloadedMedia:
        """
        Download an inbound attachment.

        Args:
            media_ref: WhatsApp media id

        Returns:
            DownloadedMedia (mime type defaults to image/jpeg)

        Raises:
            MediaDownloadError: Metadata or binary fetch failed
        """
        if not self._session:
            raise RuntimeError("Client not initialized. Use async context manager.")

        try:
            metadata = await self._fetch_metadata(media_ref)
            url = metadata.get("url")
            if not url:
                raise MediaDownloadError(f"Media {media_ref} has no download url")

            mime_type = metadata.get("mime_type") or DEFAULT_MIME_TYPE
            content = await self._fetch_binary(url)
        except MediaDownloadError:
            raise
        except asyncio.TimeoutError as e:
            logger.error("Media download timeout", media_id=media_ref)
            raise MediaDownloadError(f"Media download timed out: {media_ref}") from e
        except aiohttp.ClientError as e:
            logger.error("Media download error", media_id=media_ref, error=str(e))
            raise MediaDownloadError(f"Media download failed: {e}") from e

        if not content:
            raise MediaDownloadError(f"Media {media_ref} is empty")

        logger.info(
            "Media downloaded",
            media_id=media_ref,
            mime_type=mime_type,
            size_bytes=len(content),
        )
        return DownloadedMedia(content=content, mime_type=mime_type)

    @retry(  # type: ignore[misc]
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((asyncio.TimeoutError, aiohttp.ClientConnectionError)),
        reraise=True,
    )
    async def _fetch_metadata(self, media_ref: str) -> Dict[str, Any]:
        if not self._session:
            raise RuntimeError("Client not initialized. Use async context manager.")
        url = f"{GRAPH_BASE_URL}/{self.api_version}/{media_ref}"
        async with self._session.get(url, headers=self._headers) as response:
            if response.status != 200:
                raise MediaDownloadError(
                    f"Media metadata request failed: {response.status}"
                )
            data = await response.json()
            return data if isinstance(data, dict) else {}

    @retry(  # type: ignore[misc]
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((asyncio.TimeoutError, aiohttp.ClientConnectionError)),
        reraise=True,
    )
    async def _fetch_binary(self, url: str) -> bytes:
        if not self._session:
            raise RuntimeError("Client not initialized. Use async context manager.")
        async with self._session.get(url, headers=self._headers) as response:
            if response.status != 200:
                raise MediaDownloadError(f"Media binary request failed: {response.status}")
            return await response.read()
