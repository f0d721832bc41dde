"""MongoDB audit store built on motor."""

import logging
from typing import Any

from notifyworker.core.logging import sanitize_url

logger = logging.getLogger("notifyworker.mongo")


class MongoAuditStore:
    """Append-only audit store writing one document per outcome.

    Documents get a store-assigned ``_id``; the event id lives in a plain
    ``id`` field so repeated outcomes for one event never collide.
    """

    def __init__(
        self,
        connection_string: str,
        database_name: str,
        collection_name: str,
        client: Any = None,
    ) -> None:
        """Initialize the store.

        Args:
            connection_string: MongoDB connection URL.
            database_name: Database holding the audit collection.
            collection_name: Collection receiving outcome documents.
            client: Existing AsyncIOMotorClient to reuse instead of creating one.
        """
        self._url_safe = sanitize_url(connection_string)
        self.database_name = database_name
        self.collection_name = collection_name
        self._owns_client = client is None

        if client is None:
            try:
                from motor.motor_asyncio import AsyncIOMotorClient
            except ImportError as e:
                raise ImportError("Install motor: pip install motor") from e
            client = AsyncIOMotorClient(connection_string)

        self._client = client
        self._collection = client[database_name][collection_name]
        logger.info(
            f"Audit log configured at {self._url_safe} "
            f"({database_name}.{collection_name})"
        )

    async def append(self, document: dict[str, Any]) -> None:
        # insert_one adds _id to the dict it is given
        await self._collection.insert_one(dict(document))

    async def count(self, event_id: str | None = None) -> int:
        """Count stored outcomes, optionally for a single event."""
        query = {} if event_id is None else {"id": event_id}
        return await self._collection.count_documents(query)

    async def close(self) -> None:
        """Close the client if this store created it."""
        if self._owns_client:
            self._client.close()
