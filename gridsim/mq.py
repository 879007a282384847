from __future__ import annotations

"""
File: gridsim/mq.py
Purpose: RabbitMQ connectivity and event publishing for simulation broadcasts.
Key responsibilities:
- Declare the topic exchange.
- Publish snapshot.tick and run.completed events as JSON.
"""

import json
from typing import Any

import aio_pika
from aio_pika import ExchangeType


async def connect(rabbit_url: str) -> aio_pika.RobustConnection:
    """Connect to RabbitMQ with robust reconnect behavior."""
    return await aio_pika.connect_robust(rabbit_url)


async def setup_topology(channel: aio_pika.abc.AbstractRobustChannel, exchange_name: str):
    """Declare the durable topic exchange used for simulation events."""
    return await channel.declare_exchange(exchange_name, ExchangeType.TOPIC, durable=True)


async def publish_event(exchange: aio_pika.abc.AbstractExchange, routing_key: str, payload: dict[str, Any]) -> None:
    """Publish a JSON message to the configured exchange."""
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    msg = aio_pika.Message(
        body=body,
        content_type="application/json",
        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
    )
    await exchange.publish(msg, routing_key=routing_key)


class MQBroadcaster:
    """Broadcast sink that forwards snapshots and run completion to RabbitMQ."""
    def __init__(self, rabbit_url: str, exchange_name: str) -> None:
        self.rabbit_url = rabbit_url
        self.exchange_name = exchange_name
        self.connection: aio_pika.abc.AbstractRobustConnection | None = None
        self.exchange: aio_pika.abc.AbstractExchange | None = None

    async def start(self) -> None:
        self.connection = await connect(self.rabbit_url)
        channel = await self.connection.channel()
        self.exchange = await setup_topology(channel, self.exchange_name)

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
        self.connection = None
        self.exchange = None

    async def broadcast(self, payload: dict[str, Any]) -> None:
        """Publish a broadcast payload; routing key is taken from its event_type."""
        if self.exchange is None:
            return
        await publish_event(self.exchange, str(payload.get("event_type", "snapshot.tick")), payload)
