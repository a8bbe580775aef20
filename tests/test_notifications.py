"""Tests for the Redis pub/sub status channel (mocked Redis)."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from zeger_dispatch.domain.entities import StatusChange
from zeger_dispatch.domain.errors import ChannelUnavailable
from zeger_dispatch.infrastructure.notifications import (
    RedisNotificationChannel,
    RedisSubscription,
    channel_name,
    decode_message,
)


class TestDecodeMessage:
    def test_rejection(self):
        change = decode_message(b'{"status": "rejected", "rejection_reason": "Hujan"}')
        assert change == StatusChange("rejected", "Hujan")

    def test_reason_is_optional(self):
        assert decode_message('{"status": "accepted"}') == StatusChange("accepted")

    @pytest.mark.parametrize("payload", [b"not json", b"{}", b'{"status": 5}'])
    def test_malformed_payloads_are_dropped(self, payload):
        assert decode_message(payload) is None


def test_channel_name():
    assert channel_name("abc") == "dispatch:abc"


class TestRedisNotificationChannel:
    @pytest.mark.asyncio
    async def test_publish_sends_json(self):
        client = AsyncMock()
        channel = RedisNotificationChannel(client)

        await channel.publish("order-1", StatusChange("rejected", "Sedang sibuk"))

        name, body = client.publish.call_args.args
        assert name == "dispatch:order-1"
        assert json.loads(body) == {
            "status": "rejected",
            "rejection_reason": "Sedang sibuk",
        }

    @pytest.mark.asyncio
    async def test_publish_failure(self):
        client = AsyncMock()
        client.publish.side_effect = RedisConnectionError("refused")

        with pytest.raises(ChannelUnavailable):
            await RedisNotificationChannel(client).publish(
                "order-1", StatusChange("accepted")
            )

    @pytest.mark.asyncio
    async def test_subscribe_failure_closes_pubsub(self):
        pubsub = AsyncMock()
        pubsub.subscribe.side_effect = RedisConnectionError("refused")
        client = MagicMock()
        client.pubsub.return_value = pubsub

        with pytest.raises(ChannelUnavailable):
            await RedisNotificationChannel(client).subscribe("order-1")
        pubsub.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_subscribe(self):
        pubsub = AsyncMock()
        client = MagicMock()
        client.pubsub.return_value = pubsub

        subscription = await RedisNotificationChannel(client).subscribe("order-1")

        assert isinstance(subscription, RedisSubscription)
        pubsub.subscribe.assert_awaited_once_with("dispatch:order-1")


class TestRedisSubscription:
    @pytest.mark.asyncio
    async def test_skips_noise_until_a_valid_change(self):
        pubsub = AsyncMock()
        pubsub.get_message.side_effect = [
            None,
            {"type": "message", "data": b"garbage"},
            {"type": "message", "data": b'{"status": "accepted"}'},
        ]
        subscription = RedisSubscription(pubsub, "dispatch:order-1")

        assert await subscription.__anext__() == StatusChange("accepted")

    @pytest.mark.asyncio
    async def test_connection_loss(self):
        pubsub = AsyncMock()
        pubsub.get_message.side_effect = RedisConnectionError("reset")
        subscription = RedisSubscription(pubsub, "dispatch:order-1")

        with pytest.raises(ChannelUnavailable):
            await subscription.__anext__()

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self):
        pubsub = AsyncMock()
        subscription = RedisSubscription(pubsub, "dispatch:order-1")

        await subscription.close()

        pubsub.unsubscribe.assert_awaited_once_with("dispatch:order-1")
        pubsub.aclose.assert_awaited_once()
