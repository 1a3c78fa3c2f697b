"""
Redis client initialization.

The client is only handed out after a synchronous PING succeeded. No
timeout is added on top of the transport defaults and failed commands are
not retried.
"""

from typing import Optional

import redis
from redis.backoff import NoBackoff
from redis.retry import Retry

from infra.config import Settings, parse_addr
from infra.errors import CacheConnectionError
from infra.logging import LogSink, get_logger


logger = get_logger(__name__)


def mask(secret: str) -> str:
    return "******" if secret else ""


def init_redis(settings: Settings, log: Optional[LogSink] = None) -> redis.Redis:
    """
    Create a Redis client from settings and verify it with PING.

    Args:
        settings: Application settings
        log: Sink used for diagnostics; the module logger otherwise

    Returns:
        A live Redis client bound to the configured db index

    Raises:
        CacheConnectionError: If the address is malformed or the liveness
            PING fails
    """
    conf = settings.redis
    cache_logger = log.logger.bind(component="cache") if log else logger

    try:
        host, port = parse_addr(conf.addr)
    except ValueError as e:
        raise CacheConnectionError(str(e), {"addr": conf.addr, "db": conf.db}) from e

    client = redis.Redis(
        host=host,
        port=port,
        password=conf.password or None,
        db=conf.db,
        retry=Retry(NoBackoff(), 0),
    )

    try:
        client.ping()
    except redis.RedisError as e:
        client.close()
        raise CacheConnectionError(
            f"Redis connection failed: {e}",
            {"addr": conf.addr, "db": conf.db},
        ) from e

    password = conf.password if settings.log.show_credentials else mask(conf.password)
    cache_logger.info("Redis connected", addr=conf.addr, db=conf.db, password=password)
    return client
