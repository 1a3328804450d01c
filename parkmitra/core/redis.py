import json
import redis
from redis.exceptions import RedisError
from sqlalchemy import event
from sqlalchemy.orm import Session

from parkmitra.core.config import REDIS_URL, AVAILABILITY_CACHE_TTL
from parkmitra.core.logging_config import get_logger

logger = get_logger()


def get_redis_client(redis_url: str | None = REDIS_URL):
    if not redis_url:
        return None

    try:
        client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
        logger.info("Redis connected")
        return client
    except RedisError as e:
        logger.warning(f"Redis unavailable: {e}")
        return None


class AvailabilityCache:
    """Organization availability summaries, keyed per organization.

    A ``None`` client turns every call into a no-op.
    """

    def __init__(self, client=None, ttl: int = AVAILABILITY_CACHE_TTL):
        self.client = client
        self.ttl = ttl

    @staticmethod
    def key(organization_id: int) -> str:
        return f"availability:org:{organization_id}"

    def get(self, organization_id: int):
        if not self.client:
            return None
        try:
            data = self.client.get(self.key(organization_id))
            return json.loads(data) if data else None
        except RedisError:
            return None

    def set(self, organization_id: int, value: dict):
        if not self.client:
            return
        try:
            self.client.setex(self.key(organization_id), self.ttl, json.dumps(value))
        except RedisError:
            pass

    def invalidate(self, organization_id: int):
        if not self.client:
            return
        try:
            self.client.delete(self.key(organization_id))
        except RedisError:
            pass

    def invalidate_after_commit(self, db: Session, organization_id: int):
        """Drop the organization's entry once ``db`` commits.

        A rollback discards the pending invalidations, so readers never
        repopulate the cache from rows that are still uncommitted.
        """
        if not self.client:
            return

        pending = db.info.get("availability_invalidations")
        if pending is None:
            pending = db.info["availability_invalidations"] = set()

            def flush_pending(session):
                for org_id in sorted(pending):
                    self.invalidate(org_id)
                pending.clear()

            def discard_pending(session):
                pending.clear()

            event.listen(db, "after_commit", flush_pending)
            event.listen(db, "after_rollback", discard_pending)

        pending.add(organization_id)
