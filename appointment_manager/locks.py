"""
Per-key serialization for scheduling decisions

Capacity-check-then-write and conflict-check-then-write must not interleave for
the same staff member, and queue positions must be handed out one at a time.
Callers wrap the whole validate + commit section in scheduling_lock(key).

Backends:
- memory: one threading.Lock per key, shared by every request in this process
- redis: redis-py Lock, shared by every worker talking to the same Redis
"""

import logging
from contextlib import contextmanager
from threading import Lock
from typing import Iterator, Optional

import redis

from . import config
from .errors import LockUnavailable

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = "appointment_manager:lock:"

# Redis connection
redis_client: Optional[redis.Redis] = None

# In-process lock registry
# Format: {key: Lock}
memory_locks: dict[str, Lock] = {}
registry_lock = Lock()


def get_redis_client() -> redis.Redis:
    """Get or create the Redis client used by the redis lock backend"""
    global redis_client

    if redis_client is None:
        if not config.REDIS_URL:
            raise RuntimeError("REDIS_URL must be set when SCHEDULING_LOCK_BACKEND=redis")

        # Mask password in URL for logging
        if "@" in config.REDIS_URL:
            url_parts = config.REDIS_URL.split("@")
            protocol = url_parts[0].split(":")[0]
            masked_url = f"{protocol}:****@{url_parts[1]}"
        else:
            masked_url = "****"
        logger.info(f"📡 Connecting to Redis for scheduling locks: {masked_url}")

        try:
            redis_client = redis.from_url(
                config.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=15,
                socket_timeout=30,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=20,
            )
            redis_client.ping()
            logger.info("Redis connected successfully")
        except Exception as e:
            redis_client = None
            logger.error(f"❌ Failed to connect to Redis: {str(e)}")
            raise

    return redis_client


def _memory_lock_for(key: str) -> Lock:
    with registry_lock:
        lock = memory_locks.get(key)
        if lock is None:
            lock = Lock()
            memory_locks[key] = lock
        return lock


@contextmanager
def _memory_lock(key: str) -> Iterator[None]:
    lock = _memory_lock_for(key)
    if not lock.acquire(timeout=config.SCHEDULING_LOCK_WAIT_SECONDS):
        logger.warning(f"⚠️ Timed out waiting for lock {key}")
        raise LockUnavailable()
    try:
        yield
    finally:
        lock.release()


@contextmanager
def _redis_lock(key: str) -> Iterator[None]:
    client = get_redis_client()
    lock = client.lock(
        f"{LOCK_KEY_PREFIX}{key}",
        timeout=config.SCHEDULING_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=config.SCHEDULING_LOCK_WAIT_SECONDS,
    )
    if not lock.acquire():
        logger.warning(f"⚠️ Timed out waiting for redis lock {key}")
        raise LockUnavailable()
    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError as e:
            # Lock expired before release; the protected work already committed
            logger.error(f"❌ Redis lock {key} expired before release: {e}")


@contextmanager
def scheduling_lock(key: str) -> Iterator[None]:
    """Hold the lock for `key` (e.g. "staff:12" or "queue") for the duration of the block"""
    backend = config.SCHEDULING_LOCK_BACKEND
    if backend == "redis":
        manager = _redis_lock(key)
    elif backend == "memory":
        manager = _memory_lock(key)
    else:
        raise RuntimeError(f"Unknown SCHEDULING_LOCK_BACKEND: {backend}")

    with manager:
        logger.debug(f"🔒 Acquired scheduling lock {key}")
        yield
    logger.debug(f"🔓 Released scheduling lock {key}")


def staff_lock_key(staff_id: int) -> str:
    return f"staff:{staff_id}"


QUEUE_LOCK_KEY = "queue"
