"""
Housekeeping background job.

Bounds memory of the in-memory stores: drops expired delivery records and
sessions abandoned for longer than the idle TTL.
"""

import time

import structlog

from platebot.domain.conversation.ports import IDeliveryDeduplicator
from platebot.infrastructure.session.in_memory_session_store import InMemorySessionStore

logger = structlog.get_logger(__name__)


class HousekeepingJob:
    """Periodic sweep of the deduplicator and the session store."""

    def __init__(
        self,
        deduplicator: IDeliveryDeduplicator,
        sessions: InMemorySessionStore,
        session_idle_ttl_seconds: int = 86400,
    ) -> None:
        """
        Initialize housekeeping job.

        Args:
            deduplicator: Delivery deduplicator to sweep
            sessions: Session store to sweep
            session_idle_ttl_seconds: Idle time after which a session is dropped
        """
        self.deduplicator = deduplicator
        self.sessions = sessions
        self.session_idle_ttl_seconds = session_idle_ttl_seconds

    async def run(self) -> None:
        """Entry point called by the scheduler. Never raises."""
        start = time.perf_counter()
        try:
            removed_records = self.deduplicator.sweep()
            removed_sessions = self.sessions.sweep_idle(self.session_idle_ttl_seconds)
        except Exception as e:
            logger.error("Housekeeping job failed", error=str(e), exc_info=True)
            return

        logger.debug(
            "Housekeeping complete",
            removed_records=removed_records,
            removed_sessions=removed_sessions,
            active_sessions=len(self.sessions),
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )
