"""
In-memory delivery deduplicator.

Suppresses webhook redeliveries of the same message id within a trailing
window. State lives in this process only; a multi-instance deployment needs a
shared store.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProcessedEventRecord:
    event_id: str
    seen_at: datetime


class InMemoryDeliveryDeduplicator:
    """In-memory implementation of IDeliveryDeduplicator.

    ``should_process`` never awaits between the lookup and the insert, so
    under a single event loop two concurrent calls for the same id cannot
    both be admitted, and calls for distinct ids never wait on each other.
    """

    def __init__(
        self,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize empty record table.

        Args:
            window_seconds: Trailing window in which a repeat id is a duplicate
            clock: Time source (injectable for tests)
        """
        self._window = timedelta(seconds=window_seconds)
        self._clock = clock
        self._records: Dict[str, ProcessedEventRecord] = {}

    async def should_process(self, event_id: str) -> bool:
        """Admit an event id once per trailing window.

        Args:
            event_id: Transport message id

        Returns:
            True if the id is new (now recorded), False if it is a duplicate
        """
        if not event_id:
            return False

        now = self._clock()
        record = self._records.get(event_id)
        if record is not None and now - record.seen_at < self._window:
            logger.info("Duplicate delivery dropped", event_id=event_id)
            return False

        self._records[event_id] = ProcessedEventRecord(event_id=event_id, seen_at=now)
        return True

    def sweep(self) -> int:
        """Remove records older than the window.

        Returns:
            Number of records removed
        """
        now = self._clock()
        expired = [
            event_id
            for event_id, record in self._records.items()
            if now - record.seen_at >= self._window
        ]
        for event_id in expired:
            del self._records[event_id]

        if expired:
            logger.debug("Swept processed events", removed=len(expired))

        return len(expired)

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        """Clear all records (for testing)."""
        self._records.clear()
