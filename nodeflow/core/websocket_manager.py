"""WebSocket Manager for real-time run monitoring."""

import asyncio
import json
import uuid
from datetime import datetime
from typing import Dict, Set, Any, Optional
from queue import Queue, Empty
from fastapi import WebSocket, WebSocketDisconnect

from ..models.core import utc_now
from .event_publisher import EventChannel, run_id_from_event
from .logging import get_logger

logger = get_logger(__name__)

ALL_RUNS = "*"


class WebSocketConnection:
    """Represents a WebSocket connection with metadata."""

    def __init__(self, websocket: WebSocket, connection_id: str):
        self.websocket = websocket
        self.connection_id = connection_id
        self.connected_at: datetime = utc_now()
        self.subscribed_runs: Set[str] = set()
        self.is_active = True


class WebSocketManager:
    """Manager for WebSocket connections and run event broadcasting.

    Run events originate on worker threads; they are queued with
    ``queue_event`` and delivered by a task on the server's event loop.
    """

    def __init__(self):
        """Initialize the WebSocket manager."""
        self._connections: Dict[str, WebSocketConnection] = {}
        self._run_subscribers: Dict[str, Set[str]] = {}  # run_id -> set of connection_ids
        self._broadcast_lock = asyncio.Lock()

        # Thread-safe queue for events published from run threads
        self._broadcast_queue: Queue = Queue()
        self._queue_processor_task: Optional[asyncio.Task] = None
        self._processing_broadcasts = False

        logger.info("WebSocketManager initialized")

    async def connect(self, websocket: WebSocket) -> str:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: The WebSocket connection

        Returns:
            Connection ID for the new connection
        """
        await websocket.accept()

        connection_id = str(uuid.uuid4())
        self._connections[connection_id] = WebSocketConnection(websocket, connection_id)

        logger.info(f"WebSocket connection established: {connection_id}")

        await self._send_to_connection(connection_id, {
            "event": "connection_established",
            "connection_id": connection_id,
            "timestamp": utc_now().isoformat(),
        })

        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """Handle WebSocket disconnection and cleanup."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return

        connection.is_active = False
        for run_id in list(connection.subscribed_runs):
            self._remove_subscription(connection_id, run_id)

        del self._connections[connection_id]
        logger.info(f"WebSocket connection disconnected and cleaned up: {connection_id}")

    async def subscribe_to_run(self, connection_id: str, run_id: str) -> bool:
        """
        Subscribe a connection to the events of one run, or ``*`` for every run.

        Returns:
            True if subscription was successful, False otherwise
        """
        connection = self._connections.get(connection_id)
        if connection is None or not connection.is_active:
            logger.warning(f"Attempted to subscribe unknown or inactive connection: {connection_id}")
            return False

        connection.subscribed_runs.add(run_id)
        self._run_subscribers.setdefault(run_id, set()).add(connection_id)

        logger.info(f"Connection {connection_id} subscribed to run {run_id}")

        await self._send_to_connection(connection_id, {
            "event": "subscription_confirmed",
            "run_id": run_id,
            "timestamp": utc_now().isoformat(),
        })
        return True

    async def unsubscribe_from_run(self, connection_id: str, run_id: str) -> bool:
        """Unsubscribe a connection from a run. Returns False for unknown connections."""
        if connection_id not in self._connections:
            return False
        self._remove_subscription(connection_id, run_id)
        logger.info(f"Connection {connection_id} unsubscribed from run {run_id}")
        return True

    def _remove_subscription(self, connection_id: str, run_id: str) -> None:
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.subscribed_runs.discard(run_id)

        subscribers = self._run_subscribers.get(run_id)
        if subscribers is not None:
            subscribers.discard(connection_id)
            if not subscribers:
                del self._run_subscribers[run_id]

    async def broadcast_event(self, event: str, payload: Dict[str, Any]) -> int:
        """
        Send a run event to every connection subscribed to its run.

        Args:
            event: Event name such as ``run:<id>:log``
            payload: Event payload

        Returns:
            Number of connections the event was delivered to
        """
        run_id = run_id_from_event(event)
        subscribers = set(self._run_subscribers.get(ALL_RUNS, set()))
        if run_id:
            subscribers |= self._run_subscribers.get(run_id, set())

        if not subscribers:
            logger.debug(f"No subscribers for {event}, skipping broadcast")
            return 0

        message = {
            "event": event,
            "run_id": run_id,
            "timestamp": utc_now().isoformat(),
            "data": payload,
        }

        delivered = 0
        async with self._broadcast_lock:
            disconnected = []
            for connection_id in subscribers:
                if await self._send_to_connection(connection_id, message):
                    delivered += 1
                else:
                    disconnected.append(connection_id)

            for connection_id in disconnected:
                await self.disconnect(connection_id)

        logger.debug(f"Broadcasted {event} to {delivered} subscriber(s)")
        return delivered

    async def _send_to_connection(self, connection_id: str, data: Dict[str, Any]) -> bool:
        """
        Send data to a specific WebSocket connection.

        Returns:
            True if message was sent successfully, False otherwise
        """
        connection = self._connections.get(connection_id)
        if connection is None or not connection.is_active:
            return False

        try:
            await connection.websocket.send_text(json.dumps(data, default=str))
            return True
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected during send: {connection_id}")
            connection.is_active = False
            return False
        except Exception as e:
            logger.error(f"Error sending WebSocket message to {connection_id}: {str(e)}")
            connection.is_active = False
            return False

    async def send_to_connection(self, connection_id: str, data: Dict[str, Any]) -> bool:
        """Public method to send data to a specific connection."""
        return await self._send_to_connection(connection_id, data)

    def get_connection_count(self) -> int:
        """Get the total number of active connections."""
        return len([conn for conn in self._connections.values() if conn.is_active])

    def get_run_subscriber_count(self, run_id: str) -> int:
        """Get the number of subscribers for a specific run."""
        return len(self._run_subscribers.get(run_id, set()))

    def get_connection_info(self) -> Dict[str, Any]:
        """Get information about all active connections."""
        active_connections = [
            {
                "connection_id": conn_id,
                "connected_at": conn.connected_at.isoformat(),
                "subscribed_runs": sorted(conn.subscribed_runs),
            }
            for conn_id, conn in self._connections.items()
            if conn.is_active
        ]

        return {
            "total_connections": len(active_connections),
            "connections": active_connections,
            "run_subscribers": {
                run_id: len(subscribers)
                for run_id, subscribers in self._run_subscribers.items()
            },
        }

    def queue_event(self, event: str, payload: Dict[str, Any]) -> None:
        """Queue a run event for broadcasting. Safe to call from any thread."""
        self._broadcast_queue.put((event, payload))

    async def flush_queue(self) -> int:
        """Broadcast every queued event now. Returns the number of events processed."""
        processed = 0
        while True:
            try:
                event, payload = self._broadcast_queue.get_nowait()
            except Empty:
                return processed
            await self.broadcast_event(event, payload)
            self._broadcast_queue.task_done()
            processed += 1

    def start_broadcast_processor(self):
        """Start the broadcast queue processor."""
        if not self._processing_broadcasts:
            self._processing_broadcasts = True
            self._queue_processor_task = asyncio.create_task(self._process_broadcast_queue())
            logger.info("WebSocket broadcast processor started")

    def stop_broadcast_processor(self):
        """Stop the broadcast queue processor."""
        self._processing_broadcasts = False
        if self._queue_processor_task:
            self._queue_processor_task.cancel()
            logger.info("WebSocket broadcast processor stopped")

    async def _process_broadcast_queue(self):
        """Process broadcast messages from the queue."""
        while self._processing_broadcasts:
            try:
                if await self.flush_queue() == 0:
                    await asyncio.sleep(0.1)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error processing broadcast queue: {str(e)}")
                await asyncio.sleep(0.1)


class WebSocketEventChannel(EventChannel):
    """Event channel handing run events to a WebSocketManager."""

    def __init__(self, manager: WebSocketManager):
        self.manager = manager

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        self.manager.queue_event(event, payload)
