from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Protocol, Tuple

from nutella.net.topics import topic_matches
from nutella.utils.diagnostics import TransportError

# handler(topic, request_payload) -> response_payload
RequestHandler = Callable[[str, Any], Any]
# callback(topic, payload)
MessageCallback = Callable[[str, Any], None]


class Transport(Protocol):
    """The two broker capabilities the framework bots depend on."""

    def publish(self, topic: str, payload: Any) -> None:
        ...

    def on_request(self, topic: str, handler: RequestHandler) -> None:
        ...


class InMemoryTransport:
    """Transport that delivers messages and requests within one process."""

    def __init__(self) -> None:
        self.published: List[Tuple[str, Any]] = []
        self._subscriptions: List[Tuple[str, MessageCallback]] = []
        self._handlers: List[Tuple[str, RequestHandler]] = []
        self._lock = threading.Lock()

    def publish(self, topic: str, payload: Any) -> None:
        with self._lock:
            self.published.append((topic, payload))
            callbacks = [cb for pattern, cb in self._subscriptions if topic_matches(pattern, topic)]
        for callback in callbacks:
            callback(topic, payload)

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        with self._lock:
            self._subscriptions.append((topic, callback))

    def on_request(self, topic: str, handler: RequestHandler) -> None:
        with self._lock:
            self._handlers.append((topic, handler))

    def request(self, topic: str, payload: Any = None) -> Any:
        """Invoke the first handler whose pattern matches ``topic``."""
        with self._lock:
            handlers = [h for pattern, h in self._handlers if topic_matches(pattern, topic)]
        if not handlers:
            raise TransportError(f"No handler registered for '{topic}'.")
        return handlers[0](topic, payload)

    def published_to(self, topic: str) -> List[Any]:
        return [payload for published_topic, payload in self.published if published_topic == topic]
