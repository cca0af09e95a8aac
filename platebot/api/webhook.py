"""WhatsApp webhook endpoints.

GET  /webhook: subscription handshake (hub.mode / hub.verify_token / hub.challenge)
POST /webhook: event delivery. Always answers 200 so the platform does not
               redeliver; failures are logged.
"""

import hmac
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import PlainTextResponse

from platebot.application.conversation.engine import ConversationEngine
from platebot.domain.conversation.ports import IDeliveryDeduplicator
from platebot.domain.shared.errors import EnvelopeError
from platebot.infrastructure.config import Settings
from platebot.infrastructure.whatsapp.envelope import decode_envelope

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])

SUBSCRIBE_MODE = "subscribe"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_engine(request: Request) -> ConversationEngine:
    return request.app.state.engine


def get_deduplicator(request: Request) -> IDeliveryDeduplicator:
    return request.app.state.deduplicator


def is_valid_handshake(mode: Optional[str], token: Optional[str], expected_token: str) -> bool:
    """
    Check a subscription handshake.

    An empty configured token never matches.
    """
    if mode != SUBSCRIBE_MODE or not expected_token or token is None:
        return False
    return hmac.compare_digest(token.encode(), expected_token.encode())


@router.get("", response_class=PlainTextResponse)
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    settings: Settings = Depends(get_settings),
) -> PlainTextResponse:
    """Echo the challenge when mode and token match; 403 otherwise."""
    if is_valid_handshake(mode, token, settings.verify_token):
        logger.info("Webhook verified")
        return PlainTextResponse(challenge or "")

    logger.warning("Webhook verification failed", mode=mode)
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("")
async def receive_webhook(
    request: Request,
    engine: ConversationEngine = Depends(get_engine),
    deduplicator: IDeliveryDeduplicator = Depends(get_deduplicator),
) -> Response:
    """
    Decode the envelope and handle its events.

    Events are handled before responding; each one is isolated, so a failure
    never turns into a non-200 answer.
    """
    body = await request.body()
    try:
        events = decode_envelope(body)
    except EnvelopeError as e:
        logger.warning("Malformed webhook payload dropped", error=str(e), size_bytes=len(body))
        events = []

    if events:
        logger.info("Webhook received", event_count=len(events))
        try:
            await engine.handle_batch(events)
        except Exception:
            logger.exception("Webhook batch handling failed", event_count=len(events))

    deduplicator.sweep()
    return Response(status_code=200)
