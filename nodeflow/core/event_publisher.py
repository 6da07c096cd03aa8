"""Best-effort publication of run progress events."""

import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models.core import LogEntry, RunStatus
from .logging import get_logger

logger = get_logger(__name__)


def status_event(run_id: str) -> str:
    return f"run:{run_id}"


def log_event(run_id: str) -> str:
    return f"run:{run_id}:log"


def error_event(run_id: str) -> str:
    return f"run:{run_id}:error"


def run_id_from_event(event: str) -> Optional[str]:
    """Extract the run id from an event name such as ``run:<id>:log``."""
    parts = event.split(":")
    if len(parts) < 2 or parts[0] != "run":
        return None
    return parts[1]


class EventChannel:
    """Transport for named events. Subclasses deliver the payload somewhere."""

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class InMemoryEventChannel(EventChannel):
    """Channel that records every event it receives, in order."""

    def __init__(self):
        self._events: List[Tuple[str, Dict[str, Any]]] = []
        self._lock = threading.Lock()

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self._events.append((event, payload))

    @property
    def events(self) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return list(self._events)

    def events_for(self, event: str) -> List[Dict[str, Any]]:
        """Payloads published under exactly this event name."""
        return [payload for name, payload in self.events if name == event]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class EventPublisher:
    """Fans run events out to every configured channel.

    Delivery is unacknowledged and has no replay. A channel that raises is
    logged and skipped so publishing can never change the outcome of a run.
    """

    def __init__(self, channels: Optional[Iterable[EventChannel]] = None):
        self._channels: List[EventChannel] = list(channels or [])

    def add_channel(self, channel: EventChannel) -> None:
        self._channels.append(channel)

    def remove_channel(self, channel: EventChannel) -> None:
        if channel in self._channels:
            self._channels.remove(channel)

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        for channel in list(self._channels):
            try:
                channel.publish(event, payload)
            except Exception as e:
                logger.warning(f"Failed to publish {event} via {type(channel).__name__}: {e}")

    def publish_status(self, run_id: str, status: RunStatus, duration: Optional[int] = None) -> None:
        """Publish the overall run status on ``run:<id>``."""
        payload: Dict[str, Any] = {"status": RunStatus(status).value, "runId": run_id}
        if duration is not None:
            payload["duration"] = duration
        self.publish(status_event(run_id), payload)

    def publish_log(self, run_id: str, entry: LogEntry) -> None:
        """Publish one log entry on ``run:<id>:log``."""
        self.publish(log_event(run_id), entry.model_dump(mode="json", by_alias=True))

    def publish_error(self, run_id: str, message: str) -> None:
        """Publish the terminal error message on ``run:<id>:error``."""
        self.publish(error_event(run_id), {"error": message})
