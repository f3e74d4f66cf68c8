"""Processed webhook event tracking.

Stripe redelivers an event when our 200 does not arrive in time. Without a
record of handled event ids, every redelivery sends the member another
confirmation email. ``ProcessedEventStore`` keeps recently handled ids in
memory, keyed by Stripe ``event.id``, with a TTL and LRU eviction.

The store lives in Lambda global scope, so it is shared across warm
invocations of one execution environment only. Concurrent environments do
not see each other's entries.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass

from src.lambdas.shared.models.webhook_event import ProcessedEvent

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MAX_ENTRIES = 10_000


@dataclass
class _Entry:
    record: ProcessedEvent
    expires_at: float


class ProcessedEventStore:
    """In-memory TTL/LRU set of processed Stripe event ids.

    Example:
        store = ProcessedEventStore()

        if store.get(event.id) is None:
            ...handle event...
            store.record(ProcessedEvent(event_id=event.id, ...))
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, event_id: str) -> ProcessedEvent | None:
        """Return the record for ``event_id`` if it was handled and not expired."""
        with self._lock:
            entry = self._entries.get(event_id)
            if entry is None:
                return None
            if time.monotonic() >= entry.expires_at:
                del self._entries[event_id]
                return None
            self._entries.move_to_end(event_id)
            return entry.record

    def record(self, processed: ProcessedEvent) -> None:
        """Remember a handled event, evicting the least recently used on overflow."""
        with self._lock:
            self._entries[processed.event_id] = _Entry(
                record=processed,
                expires_at=time.monotonic() + self.ttl_seconds,
            )
            self._entries.move_to_end(processed.event_id)
            while len(self._entries) > self.max_entries:
                evicted_id, _ = self._entries.popitem(last=False)
                logger.debug(
                    "processed_event_evicted", extra={"event_id": evicted_id}
                )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
