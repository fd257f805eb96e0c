"""
Redis-based idempotency claims.

Used by the refund adapter so that a second refund call for the same
payment reference is reported as skipped instead of reaching the payment
provider again.  A failed attempt releases its claim so it can be retried.

Implementation uses SET NX EX for claim and a Lua script for atomic
check-and-delete on release.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

_RELEASE_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class IdempotencyGuard:
    def __init__(
        self, client: aioredis.Redis, namespace: str, ttl_seconds: int = 86_400
    ):
        self.redis = client
        self.namespace = namespace
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    def _key(self, key: str) -> str:
        return f"idem:{self.namespace}:{key}"

    async def claim(self, key: str) -> bool:
        """Returns True the first time ``key`` is claimed within the TTL."""
        return bool(
            await self.redis.set(self._key(key), self.token, nx=True, ex=self.ttl)
        )

    async def release(self, key: str) -> None:
        """Release only if this guard still owns the claim (atomic via Lua)."""
        await self.redis.eval(_RELEASE_LUA, 1, self._key(key), self.token)
