# servicedesk/core/websockets.py
"""
Real-time fanout of queue changes to websocket subscribers.

Subscribers listen on a channel: the queue of one service (staff dashboards)
or one ticket (the visitor's kiosk screen). Delivery is best-effort and
at-most-once; a client that connects late re-fetches state over REST.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

import redis.asyncio as redis
from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceChannel:
    service_id: int

    @property
    def key(self) -> str:
        return f"service:{self.service_id}"


@dataclass(frozen=True)
class TicketChannel:
    ticket_id: int

    @property
    def key(self) -> str:
        return f"ticket:{self.ticket_id}"


Channel = Union[ServiceChannel, TicketChannel]


def channel_from_key(key: str) -> Channel:
    kind, _, raw_id = key.partition(":")
    if kind == "service":
        return ServiceChannel(int(raw_id))
    if kind == "ticket":
        return TicketChannel(int(raw_id))
    raise ValueError(f"Unknown channel key: {key!r}")


@dataclass(frozen=True)
class QueueEvent:
    ticket_id: int
    service_id: int
    action: str
    new_status: Optional[str]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def channels(self) -> Tuple[Channel, Channel]:
        return ServiceChannel(self.service_id), TicketChannel(self.ticket_id)

    def payload(self) -> dict:
        return {
            "ticketId": self.ticket_id,
            "serviceId": self.service_id,
            "action": self.action,
            "newStatus": self.new_status,
            "timestamp": self.timestamp.isoformat(),
        }


class ConnectionManager:
    def __init__(self):
        self.subscriptions: Dict[Channel, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, channel: Channel):
        await websocket.accept()
        self.subscriptions.setdefault(channel, []).append(websocket)

    def disconnect(self, websocket: WebSocket, channel: Channel):
        connections = self.subscriptions.get(channel)
        if connections and websocket in connections:
            connections.remove(websocket)
            if not connections:
                del self.subscriptions[channel]

    def subscriber_count(self, channel: Channel) -> int:
        return len(self.subscriptions.get(channel, []))

    async def send(self, channel: Channel, payload: dict):
        """
        Sends a JSON payload to every socket subscribed to `channel`.
        """
        # Iterate over a copy so failed sockets can be dropped during the loop
        for connection in self.subscriptions.get(channel, [])[:]:
            try:
                await connection.send_json(payload)
            except Exception as e:
                logger.debug(f"Dropping dead websocket on {channel.key}: {e}")
                self.disconnect(connection, channel)


class LocalBackend:
    """Delivers straight to this process's subscribers."""

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def publish(self, channel: Channel, payload: dict) -> None:
        await self.manager.send(channel, payload)


class RedisBackend:
    """
    Routes events through a Redis pub/sub channel so every server instance
    delivers to its own subscribers.
    """

    PUBSUB_CHANNEL = "servicedesk:fanout"

    def __init__(self, url: str, manager: ConnectionManager):
        self.url = url
        self.manager = manager
        self._client: Optional[redis.Redis] = None
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self._client = redis.from_url(self.url, decode_responses=True)
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(self.PUBSUB_CHANNEL)
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"✅ Fanout connected to Redis: {self.url.split('@')[-1]}")

    async def stop(self) -> None:
        if self._listener:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self.PUBSUB_CHANNEL)
            await self._pubsub.aclose()
        if self._client is not None:
            await self._client.aclose()

    async def publish(self, channel: Channel, payload: dict) -> None:
        if self._client is None:
            raise RuntimeError("RedisBackend not started. Call start() first.")
        message = json.dumps({"channel": channel.key, "payload": payload})
        await self._client.publish(self.PUBSUB_CHANNEL, message)

    async def _listen(self) -> None:
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                data = json.loads(message["data"])
                channel = channel_from_key(data["channel"])
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Ignoring malformed fanout message: {e}")
                continue
            await self.manager.send(channel, data["payload"])


class Fanout:
    """
    Publishes queue events. Publishing is fire-and-forget: a failure is
    logged and never reaches the operation that produced the event.
    """

    def __init__(self, backend: Union[LocalBackend, RedisBackend]):
        self.backend = backend

    async def publish(self, event: QueueEvent) -> None:
        payload = event.payload()
        for channel in event.channels():
            try:
                await self.backend.publish(channel, payload)
            except Exception as e:
                logger.warning(f"Fanout publish to {channel.key} failed: {e}")
