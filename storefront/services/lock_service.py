# storefront/services/lock_service.py
import uuid
from contextlib import contextmanager

import redis

from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry
from storefront.utils.settings import PAYMENT_LOCK_TTL_SECONDS, REDIS_URL

logger = get_logger(__name__)

#compare-and-delete in one Lua script, redis runs it atomically
#so nobody can sneak in between GET and DEL and we never drop someone else's lock
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockBusyError(RuntimeError):
    pass


class LockService:
    """
    Distributed locks in Redis. Used to serialize concurrent deliveries of
    the same payment notification across workers; nothing here is held
    in-process.
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def acquire(self, key: str, owner: str, ttl: int) -> bool:
        logger.info(f"Acquire lock {key} for {owner}")
        #SET payment:P1:lock "<owner>" NX EX 30, expires by itself if the worker dies
        return bool(self.redis.set(name=key, value=owner, nx=True, ex=ttl))

    @redis_retry()
    def release(self, key: str, owner: str) -> bool:
        logger.info(f"Release lock {key} for {owner}")
        return bool(self.redis.eval(_RELEASE_LUA, 1, key, owner))

    @contextmanager
    def payment_lock(self, provider_ref_id: str, ttl: int = PAYMENT_LOCK_TTL_SECONDS):
        key = f"payment:{provider_ref_id}:lock"
        owner = uuid.uuid4().hex
        if not self.acquire(key, owner, ttl):
            raise LockBusyError(f"Payment {provider_ref_id} is being reconciled by another worker")
        try:
            yield
        finally:
            self.release(key, owner)
