"""
Realtime status channel over Redis pub/sub.

One channel per dispatch record, ``dispatch:{id}``.  The rider surface
publishes a JSON payload whenever it writes the order status::

    {"status": "rejected", "rejection_reason": "Sedang sibuk"}

Pub/sub is fire-and-forget: a message published while nobody is
subscribed is lost, which is why the negotiator re-reads the record once
after subscribing.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis
from pydantic import BaseModel, ValidationError
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from zeger_dispatch.domain.entities import StatusChange
from zeger_dispatch.domain.errors import ChannelUnavailable
from zeger_dispatch.domain.ports import NotificationChannel, Subscription

logger = logging.getLogger(__name__)


class StatusChangeMessage(BaseModel):
    status: str
    rejection_reason: Optional[str] = None


def channel_name(record_id: str) -> str:
    return f"dispatch:{record_id}"


def decode_message(data: str | bytes) -> Optional[StatusChange]:
    """Parse a pub/sub payload; None for anything malformed."""
    try:
        payload = StatusChangeMessage.model_validate_json(data)
    except ValidationError:
        logger.warning("Ignoring malformed status message: %r", data)
        return None
    return StatusChange(payload.status, payload.rejection_reason)


class RedisSubscription(Subscription):
    def __init__(self, pubsub: PubSub, name: str):
        self._pubsub = pubsub
        self._name = name

    async def __anext__(self) -> StatusChange:
        while True:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=None
                )
            except RedisError as exc:
                raise ChannelUnavailable(f"{self._name}: {exc}") from exc
            if message is None or message.get("type") != "message":
                continue
            change = decode_message(message["data"])
            if change is not None:
                return change

    async def close(self) -> None:
        try:
            await self._pubsub.unsubscribe(self._name)
        except RedisError:
            logger.debug("Unsubscribe from %s failed", self._name)
        finally:
            await self._pubsub.aclose()


class RedisNotificationChannel(NotificationChannel):
    def __init__(self, client: aioredis.Redis):
        self.redis = client

    async def subscribe(self, record_id: str) -> RedisSubscription:
        name = channel_name(record_id)
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(name)
        except RedisError as exc:
            await pubsub.aclose()
            raise ChannelUnavailable(f"Subscribing to {name} failed: {exc}") from exc
        return RedisSubscription(pubsub, name)

    async def publish(self, record_id: str, change: StatusChange) -> None:
        message = StatusChangeMessage(
            status=change.status, rejection_reason=change.rejection_reason
        )
        try:
            await self.redis.publish(channel_name(record_id), message.model_dump_json())
        except RedisError as exc:
            raise ChannelUnavailable(
                f"Publishing to {channel_name(record_id)} failed: {exc}"
            ) from exc
