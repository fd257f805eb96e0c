"""
Notification fan-out over Redis pub/sub.

Channels are plain strings (``dispatch``, ``booking:<id>``, ``rider:<id>``,
``driver:<id>``); each message is a JSON envelope ``{"event", "data"}`` that
the realtime gateway relays to connected clients.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class RedisNotificationPublisher:
    def __init__(self, client: aioredis.Redis):
        self.redis = client

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        message = json.dumps({"event": event, "data": payload})
        receivers = await self.redis.publish(channel, message)
        logger.debug("Published %s to %s (%d receivers)", event, channel, receivers)
