"""Audit store implementations for outcome records."""

from notifyworker.core.audit import InMemoryAuditStore
from notifyworker.stores.mongo import MongoAuditStore
from notifyworker.stores.redis_stream import RedisStreamAuditStore

__all__ = ["InMemoryAuditStore", "MongoAuditStore", "RedisStreamAuditStore"]
