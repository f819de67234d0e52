"""
Redis client construction.

The client is built once per process by the application lifespan (or the
worker) and handed to the components that need it.
"""
import logging

from fastapi import Request
from redis.asyncio import Redis

from authcore.core.config import RedisSettings

logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    if "@" in url:
        protocol = url.split("://")[0]
        return f"{protocol}://****@{url.split('@', 1)[1]}"
    return url


def create_redis(redis_settings: RedisSettings) -> Redis:
    """Create an asyncio Redis client from settings."""
    url = redis_settings.url
    logger.info(f"Creating Redis client for {_mask_url(url)}")
    return Redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=redis_settings.redis_socket_timeout,
        socket_timeout=redis_settings.redis_socket_timeout,
        retry_on_timeout=True,
        health_check_interval=30,
    )


async def get_redis(request: Request) -> Redis:
    """Dependency returning the application's Redis client."""
    return request.app.state.redis
