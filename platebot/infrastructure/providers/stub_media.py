"""Stub media downloader for local development and testing."""

from platebot.domain.conversation.ports import DownloadedMedia

# Minimal JPEG: SOI, JFIF APP0 header, EOI
STUB_IMAGE_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"


class StubMediaDownloader:
    """Stub implementation of IMediaDownloader returning a tiny JPEG."""

    async def __aenter__(self) -> "StubMediaDownloader":
        """Enter async context (no-op for stub)."""
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Exit async context (no-op for stub)."""
        return None

    async def download(self, media_ref: str) -> DownloadedMedia:
        return DownloadedMedia(content=STUB_IMAGE_BYTES, mime_type="image/jpeg")
