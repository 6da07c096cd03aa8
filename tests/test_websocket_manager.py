"""Tests for WebSocket run monitoring."""

import asyncio
import json

from fastapi import WebSocketDisconnect

from nodeflow.core.event_publisher import EventPublisher
from nodeflow.core.websocket_manager import ALL_RUNS, WebSocketEventChannel, WebSocketManager


class FakeWebSocket:
    """Records text frames sent to it."""

    def __init__(self, fail_with=None):
        self.accepted = False
        self.sent = []
        self.fail_with = fail_with

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(json.loads(text))

    def events(self):
        return [message["event"] for message in self.sent]


class TestWebSocketManager:
    """Test cases for WebSocketManager."""

    def test_connect_and_subscribe(self):
        async def scenario():
            manager = WebSocketManager()
            socket = FakeWebSocket()

            connection_id = await manager.connect(socket)
            subscribed = await manager.subscribe_to_run(connection_id, "r1")

            return manager, socket, connection_id, subscribed

        manager, socket, connection_id, subscribed = asyncio.run(scenario())

        assert socket.accepted
        assert subscribed
        assert socket.events() == ["connection_established", "subscription_confirmed"]
        assert manager.get_connection_count() == 1
        assert manager.get_run_subscriber_count("r1") == 1
        assert manager.get_connection_info()["connections"][0]["subscribed_runs"] == ["r1"]

    def test_broadcast_reaches_run_and_wildcard_subscribers(self):
        async def scenario():
            manager = WebSocketManager()
            watcher, everything, other = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()

            await manager.subscribe_to_run(await manager.connect(watcher), "r1")
            await manager.subscribe_to_run(await manager.connect(everything), ALL_RUNS)
            await manager.subscribe_to_run(await manager.connect(other), "r2")

            delivered = await manager.broadcast_event("run:r1:log", {"message": "hi"})
            return delivered, watcher, everything, other

        delivered, watcher, everything, other = asyncio.run(scenario())

        assert delivered == 2
        message = watcher.sent[-1]
        assert message["event"] == "run:r1:log"
        assert message["run_id"] == "r1"
        assert message["data"] == {"message": "hi"}
        assert everything.sent[-1]["event"] == "run:r1:log"
        assert other.events() == ["connection_established", "subscription_confirmed"]

    def test_broadcast_without_subscribers(self):
        assert asyncio.run(WebSocketManager().broadcast_event("run:r1", {"status": "running"})) == 0

    def test_failed_send_drops_connection(self):
        async def scenario():
            manager = WebSocketManager()
            socket = FakeWebSocket()
            connection_id = await manager.connect(socket)
            await manager.subscribe_to_run(connection_id, "r1")
            socket.fail_with = WebSocketDisconnect()

            delivered = await manager.broadcast_event("run:r1", {"status": "success"})
            return manager, delivered

        manager, delivered = asyncio.run(scenario())

        assert delivered == 0
        assert manager.get_connection_count() == 0
        assert manager.get_run_subscriber_count("r1") == 0

    def test_unsubscribe_and_disconnect(self):
        async def scenario():
            manager = WebSocketManager()
            connection_id = await manager.connect(FakeWebSocket())
            await manager.subscribe_to_run(connection_id, "r1")

            first = await manager.unsubscribe_from_run(connection_id, "r1")
            await manager.disconnect(connection_id)
            second = await manager.unsubscribe_from_run(connection_id, "r1")
            rejected = await manager.subscribe_to_run(connection_id, "r1")
            return manager, first, second, rejected

        manager, first, second, rejected = asyncio.run(scenario())

        assert first is True
        assert second is False
        assert rejected is False
        assert manager.get_run_subscriber_count("r1") == 0

    def test_event_channel_queues_until_flushed(self):
        manager = WebSocketManager()
        socket = FakeWebSocket()
        publisher = EventPublisher([WebSocketEventChannel(manager)])

        async def subscribe():
            await manager.subscribe_to_run(await manager.connect(socket), "r1")

        asyncio.run(subscribe())
        publisher.publish_status("r1", "running")
        publisher.publish_error("r1", "boom")
        assert socket.events() == ["connection_established", "subscription_confirmed"]

        processed = asyncio.run(manager.flush_queue())

        assert processed == 2
        assert socket.events()[-2:] == ["run:r1", "run:r1:error"]
        assert socket.sent[-1]["data"] == {"error": "boom"}
