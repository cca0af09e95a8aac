"""WhatsApp Cloud API client - Implements ITransport port.

Sends outbound messages through the Graph API ``/{phone_number_id}/messages``
endpoint.

Key Features:
- Text, reply-button and list-menu messages
- Label truncation to WhatsApp display limits
- Circuit breaker (5 failures → 60s timeout)
- Retry logic (exponential backoff) on connection errors
"""

# mypy: warn-unused-ignores=False

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiohttp
import structlog
from circuitbreaker import circuit
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from platebot.domain.shared.errors import TransportError

logger = structlog.get_logger(__name__)

GRAPH_BASE_URL = "https://graph.facebook.com"

# WhatsApp interactive message limits
BUTTON_TITLE_LIMIT = 20
ROW_TITLE_LIMIT = 24
MAX_BUTTONS = 3
MAX_LIST_ROWS = 10
LIST_SECTION_TITLE = "Opções"


def truncate_label(text: str, limit: int) -> str:
    """
    Shorten a label to ``limit`` characters with a trailing ``...``.

    Cuts at the last space that still leaves room for the ellipsis; without
    one, cuts mid-word. The result never exceeds ``limit``.

    Example:
        >>> truncate_label("Feijão carioca cozido com bacon", 24)
        'Feijão carioca cozido...'
    """
    if len(text) <= limit:
        return text

    cut = text.rfind(" ", 0, limit - 2)
    if cut > 0:
        return text[:cut] + "..."
    return text[: limit - 3] + "..."


class WhatsAppClient:
    """
    WhatsApp Cloud API client implementing ITransport port.

    Example:
        >>> async with WhatsAppClient(token, phone_number_id) as client:
        ...     await client.send_text("5511999990000", "Olá!")
    """

    def __init__(
        self,
        token: str,
        phone_number_id: str,
        api_version: str = "v21.0",
        timeout: float = 10.0,
    ) -> None:
        """
        Initialize WhatsApp client.

        Args:
            token: Graph API bearer token
            phone_number_id: Sender phone number id
            api_version: Graph API version (e.g., "v21.0")
            timeout: Total HTTP timeout in seconds
        """
        self.token = token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "WhatsAppClient":
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
    def messages_url(self) -> str:
        return f"{GRAPH_BASE_URL}/{self.api_version}/{self.phone_number_id}/messages"

    async def send_text(self, conversation_id: str, text: str) -> None:
        """Send a plain text message (link previews disabled)."""
        await self._send(
            {
                "messaging_product": "whatsapp",
                "to": conversation_id,
                "type": "text",
                "text": {"preview_url": False, "body": text},
            }
        )

    async def send_buttons(
        self, conversation_id: str, text: str, buttons: Mapping[str, str]
    ) -> None:
        """
        Send up to three reply buttons.

        Args:
            conversation_id: Recipient
            text: Message body
            buttons: Reply id → label, in display order
        """
        actions = [
            {
                "type": "reply",
                "reply": {"id": button_id, "title": truncate_label(title, BUTTON_TITLE_LIMIT)},
            }
            for button_id, title in list(buttons.items())[:MAX_BUTTONS]
        ]
        await self._send(
            {
                "messaging_product": "whatsapp",
                "to": conversation_id,
                "type": "interactive",
                "interactive": {
                    "type": "button",
                    "body": {"text": text},
                    "action": {"buttons": actions},
                },
            }
        )

    async def send_list_menu(
        self,
        conversation_id: str,
        text: str,
        button_label: str,
        rows: Mapping[str, str],
        row_limit: int = MAX_LIST_ROWS,
    ) -> None:
        """
        Send a single-section list menu.

        Rows beyond ``row_limit`` are dropped; row titles are truncated to
        the 24-character display limit.
        """
        list_rows: List[Dict[str, str]] = [
            {"id": row_id, "title": truncate_label(title, ROW_TITLE_LIMIT)}
            for row_id, title in list(rows.items())[: min(row_limit, MAX_LIST_ROWS)]
        ]
        await self._send(
            {
                "messaging_product": "whatsapp",
                "to": conversation_id,
                "type": "interactive",
                "interactive": {
                    "type": "list",
                    "body": {"text": text},
                    "action": {
                        "button": truncate_label(button_label, BUTTON_TITLE_LIMIT),
                        "sections": [{"title": LIST_SECTION_TITLE, "rows": list_rows}],
                    },
                },
            }
        )

    async def _send(self, payload: Dict[str, Any]) -> None:
        """
        Post a message payload.

        Raises:
            TransportError: On HTTP error status, connection failure or timeout
        """
        message_type = payload.get("type")
        try:
            status, body = await self._post_message(payload)
        except asyncio.TimeoutError as e:
            logger.error("WhatsApp send timeout", message_type=message_type)
            raise TransportError("WhatsApp send timed out") from e
        except Exception as e:
            logger.error("WhatsApp send error", message_type=message_type, error=str(e))
            raise TransportError(f"WhatsApp send failed: {e}") from e

        if status >= 400:
            logger.warning(
                "WhatsApp API rejected message",
                status=status,
                message_type=message_type,
                body=body[:500],
            )
            raise TransportError(f"WhatsApp API error: {status}")

        logger.debug("WhatsApp message sent", message_type=message_type)

    @circuit(failure_threshold=5, recovery_timeout=60, name="whatsapp_send")  # type: ignore[misc]
    @retry(  # type: ignore[misc]
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((asyncio.TimeoutError, aiohttp.ClientConnectionError)),
        reraise=True,
    )
    async def _post_message(self, payload: Dict[str, Any]) -> Tuple[int, str]:
        if not self._session:
            raise RuntimeError("Client not initialized. Use async context manager.")

        headers = {"Authorization": f"Bearer {self.token}"}
        async with self._session.post(self.messages_url, json=payload, headers=headers) as response:
            return response.status, await response.text()
