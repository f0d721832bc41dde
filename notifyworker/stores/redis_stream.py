"""Redis Streams audit store.

Each outcome is appended to a stream with XADD, which gives an append-only
log with server-assigned ids, so duplicate outcomes for one event are kept.
"""

import json
import logging
from typing import Any

from notifyworker.core.logging import sanitize_url

logger = logging.getLogger("notifyworker.redis")


class RedisStreamAuditStore:
    """Append-only audit store on a Redis stream."""

    def __init__(
        self,
        redis_url: str,
        stream_key: str = "notifyworker:audit",
        max_len: int | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            redis_url: Redis connection URL.
            stream_key: Stream receiving outcome records.
            max_len: Approximate cap on stream length (None keeps everything).
        """
        self._url = redis_url
        self._url_safe = sanitize_url(redis_url)
        self.stream_key = stream_key
        self.max_len = max_len
        self._redis: Any = None

    async def _get_client(self) -> Any:
        if self._redis is not None:
            return self._redis
        try:
            from redis.asyncio import Redis
        except ImportError as e:
            raise ImportError("Install redis: pip install notifyworker[redis]") from e

        self._redis = Redis.from_url(self._url, decode_responses=True)
        logger.info(f"Audit stream '{self.stream_key}' at {self._url_safe}")
        return self._redis

    async def append(self, document: dict[str, Any]) -> None:
        redis = await self._get_client()
        await redis.xadd(
            self.stream_key,
            {"id": document.get("id", ""), "record": json.dumps(document, default=str)},
            maxlen=self.max_len,
            approximate=True,
        )

    async def read(self, count: int | None = None) -> list[dict[str, Any]]:
        """Return stored records, oldest first."""
        redis = await self._get_client()
        entries = await redis.xrange(self.stream_key, count=count)
        return [json.loads(fields["record"]) for _, fields in entries]

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def delete_stream(self) -> None:
        """Delete the stream (for testing)."""
        redis = await self._get_client()
        await redis.delete(self.stream_key)
