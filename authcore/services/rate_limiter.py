"""
Sliding-window rate limiter backed by Redis.

Each identity gets a sorted set of attempt timestamps. One MULTI/EXEC
pipeline trims entries older than the window, records the current attempt,
counts the window and refreshes the key TTL, so concurrent requests across
processes see a consistent count.
"""

import logging
import math
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict

from redis.asyncio import Redis
from redis.exceptions import RedisError

from authcore.core.config import RateLimitSettings

logger = logging.getLogger(__name__)

KEY_PREFIX = "auth-rate-limit"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Maximum attempts per window for one action."""

    attempts: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one limiter check."""

    allowed: bool
    count: int
    limit: int
    retry_after: int = 0

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)


def policies_from_settings(rate_limit: RateLimitSettings) -> Dict[str, RateLimitPolicy]:
    """Build the named policies (login, refresh, signup) from settings."""
    return {
        "login": RateLimitPolicy(
            rate_limit.login_rate_limit_attempts,
            rate_limit.login_rate_limit_window_seconds,
        ),
        "refresh": RateLimitPolicy(
            rate_limit.refresh_rate_limit_attempts,
            rate_limit.refresh_rate_limit_window_seconds,
        ),
        "signup": RateLimitPolicy(
            rate_limit.signup_rate_limit_attempts,
            rate_limit.signup_rate_limit_window_seconds,
        ),
    }


class RateLimiter:
    """
    Shared sliding-window limiter.

    Holds no counters itself; all state lives in Redis so every process
    enforces the same limit. Every attempt is recorded, including denied
    ones, so hammering an identity keeps it locked.
    """

    def __init__(
        self,
        redis: Redis,
        policies: Dict[str, RateLimitPolicy],
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis
        self.policies = policies
        self.clock = clock

    @staticmethod
    def key_for(action: str, identity: str) -> str:
        """Redis key for an action and identity (identities are case-folded)."""
        return f"{KEY_PREFIX}:{action}:{identity.strip().lower()}"

    async def check_limit(self, identity: str, action: str = "login") -> RateLimitResult:
        """
        Record an attempt and decide whether it is allowed.

        Args:
            identity: Identity being limited (email for login)
            action: Policy name

        Returns:
            RateLimitResult; ``allowed`` is False once the window holds more
            attempts than the policy permits

        Fails open (allows) if Redis is unreachable.
        """
        policy = self.policies[action]
        key = self.key_for(action, identity)
        now = self.clock()
        member = f"{now}:{uuid.uuid4().hex}"

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, now - policy.window_seconds)
                pipe.zadd(key, {member: now})
                pipe.zcard(key)
                pipe.zrange(key, 0, 0, withscores=True)
                pipe.expire(key, policy.window_seconds)
                _, _, count, oldest, _ = await pipe.execute()
        except RedisError as e:
            logger.error(f"Rate limiter unavailable, allowing {action} attempt: {e}")
            return RateLimitResult(allowed=True, count=0, limit=policy.attempts)

        count = int(count)
        if count <= policy.attempts:
            return RateLimitResult(allowed=True, count=count, limit=policy.attempts)

        retry_after = policy.window_seconds
        if oldest:
            oldest_score = float(oldest[0][1])
            retry_after = max(math.ceil(oldest_score + policy.window_seconds - now), 1)

        logger.warning(
            f"Rate limit exceeded for {action}: {count}/{policy.attempts} "
            f"in {policy.window_seconds}s (retry after {retry_after}s)"
        )
        return RateLimitResult(
            allowed=False,
            count=count,
            limit=policy.attempts,
            retry_after=retry_after,
        )

    async def reset(self, identity: str, action: str = "login") -> None:
        """Forget all recorded attempts for an identity."""
        await self.redis.delete(self.key_for(action, identity))

