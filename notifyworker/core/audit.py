"""Audit recorder for terminal notification outcomes."""

import logging
from typing import Any, Protocol

from notifyworker.core.event import NotificationEvent

logger = logging.getLogger("notifyworker.audit")


class AuditStore(Protocol):
    """Append-only persistence collaborator.

    Each call stores a new document; existing documents are never updated
    or deleted. Stores holding connections also expose an async ``close``.
    """

    async def append(self, document: dict[str, Any]) -> None: ...


class InMemoryAuditStore:
    """Simple in-memory audit store with bounded size."""

    def __init__(self, max_size: int = 10_000) -> None:
        self._documents: list[dict[str, Any]] = []
        self._max_size = max_size
        self._dropped_count = 0

    def __bool__(self) -> bool:
        """Always truthy, even when empty."""
        return True

    async def append(self, document: dict[str, Any]) -> None:
        if len(self._documents) >= self._max_size:
            # Drop oldest to make room (FIFO eviction)
            self._documents.pop(0)
            self._dropped_count += 1
        self._documents.append(dict(document))

    @property
    def documents(self) -> list[dict[str, Any]]:
        return list(self._documents)

    def find(self, event_id: str) -> list[dict[str, Any]]:
        """Return every record appended for an event id, oldest first."""
        return [doc for doc in self._documents if doc.get("id") == event_id]

    def clear(self) -> None:
        self._documents.clear()

    def __len__(self) -> int:
        return len(self._documents)

    @property
    def dropped_count(self) -> int:
        """Number of documents dropped due to size limit."""
        return self._dropped_count


class AuditRecorder:
    """Best-effort writer of outcome records.

    Persistence is optional: with no store the recorder is disabled and
    ``record`` does nothing. Store failures are logged and never raised, so
    they cannot change how a delivery is acknowledged.
    """

    def __init__(self, store: AuditStore | None = None) -> None:
        self.store = store
        self.enabled = store is not None
        self.failures = 0

    async def record(self, event: NotificationEvent) -> bool:
        """Append one outcome record for ``event``.

        Returns:
            True if the record was stored, False if disabled or the store failed.
        """
        if not self.enabled:
            return False
        try:
            await self.store.append(event.to_document())
        except Exception as e:
            self.failures += 1
            logger.error(
                f"Failed to persist outcome for {event.id}: {e}",
                extra={
                    "event_id": event.id,
                    "event_type": event.type,
                    "error": str(e),
                },
            )
            return False
        logger.debug(
            f"Stored outcome for {event.id}",
            extra={"event_id": event.id, "event_type": event.type, "sent": event.sent},
        )
        return True

    async def close(self) -> None:
        """Release the store's connection, if it has one."""
        close = getattr(self.store, "close", None)
        if close is None:
            return
        try:
            await close()
        except Exception as e:
            logger.error(f"Failed to close audit store: {e}", extra={"error": str(e)})
