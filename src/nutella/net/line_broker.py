from __future__ import annotations

import socket
import socketserver
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from nutella.net.topics import topic_matches
from nutella.net.transport import MessageCallback, RequestHandler
from nutella.utils.diagnostics import TransportError


class BrokerMessage(BaseModel):
    """One line on the wire."""

    model_config = ConfigDict(extra="ignore")

    op: Literal["subscribe", "publish", "message", "handle", "request", "response"]
    topic: str | None = None
    payload: Any = None
    id: str | None = None
    ok: bool = True
    error: str | None = None


def encode_message(message: BrokerMessage) -> bytes:
    return (message.model_dump_json() + "\n").encode("utf-8")


class _Connection:
    def __init__(self, wfile) -> None:
        self.wfile = wfile
        self.lock = threading.Lock()

    def send(self, message: BrokerMessage) -> bool:
        with self.lock:
            try:
                self.wfile.write(encode_message(message))
                return True
            except OSError:
                return False


@dataclass
class _BrokerState:
    subscriptions: List[Tuple[str, _Connection]] = field(default_factory=list)
    handlers: List[Tuple[str, _Connection]] = field(default_factory=list)
    pending: Dict[str, Tuple[_Connection, str | None]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def dispatch(self, connection: _Connection, message: BrokerMessage) -> None:
        if message.topic is None and message.op != "response":
            connection.send(BrokerMessage(op="response", id=message.id, ok=False, error="Missing topic."))
            return

        if message.op == "subscribe":
            with self.lock:
                self.subscriptions.append((message.topic, connection))
        elif message.op == "handle":
            with self.lock:
                self.handlers.append((message.topic, connection))
        elif message.op == "publish":
            with self.lock:
                targets = [conn for pattern, conn in self.subscriptions if topic_matches(pattern, message.topic)]
            outgoing = BrokerMessage(op="message", topic=message.topic, payload=message.payload)
            for target in targets:
                target.send(outgoing)
        elif message.op == "request":
            self._route_request(connection, message)
        elif message.op == "response":
            with self.lock:
                route = self.pending.pop(message.id or "", None)
            if route is None:
                return
            requester, original_id = route
            requester.send(message.model_copy(update={"id": original_id}))

    def _route_request(self, connection: _Connection, message: BrokerMessage) -> None:
        with self.lock:
            handler = next(
                (conn for pattern, conn in self.handlers if topic_matches(pattern, message.topic)),
                None,
            )
            routed_id = uuid.uuid4().hex
            if handler is not None:
                self.pending[routed_id] = (connection, message.id)

        if handler is None:
            connection.send(
                BrokerMessage(
                    op="response",
                    topic=message.topic,
                    id=message.id,
                    ok=False,
                    error=f"No handler registered for '{message.topic}'.",
                )
            )
            return

        if not handler.send(message.model_copy(update={"id": routed_id})):
            with self.lock:
                self.pending.pop(routed_id, None)
            connection.send(
                BrokerMessage(op="response", topic=message.topic, id=message.id, ok=False, error="Handler unreachable.")
            )

    def drop(self, connection: _Connection) -> None:
        with self.lock:
            self.subscriptions = [(p, c) for p, c in self.subscriptions if c is not connection]
            self.handlers = [(p, c) for p, c in self.handlers if c is not connection]
            self.pending = {k: v for k, v in self.pending.items() if v[0] is not connection}


class _BrokerHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        state: _BrokerState = self.server.broker_state
        connection = _Connection(self.wfile)
        try:
            for line in self.rfile:
                if not line.strip():
                    continue
                try:
                    message = BrokerMessage.model_validate_json(line)
                except ValidationError as exc:
                    connection.send(BrokerMessage(op="response", ok=False, error=str(exc)))
                    continue
                state.dispatch(connection, message)
        except OSError:
            pass
        finally:
            state.drop(connection)


class _ThreadingTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class LineBroker:
    """Small pub/sub and request/response broker speaking JSON lines over TCP."""

    def __init__(self, host: str, port: int) -> None:
        self._server = _ThreadingTCPServer((host, port), _BrokerHandler)
        self._server.broker_state = _BrokerState()
        self._serving = threading.Event()

    @property
    def address(self) -> Tuple[str, int]:
        host, port = self._server.server_address[:2]
        return host, port

    def serve_forever(self) -> None:
        self._serving.set()
        self._server.serve_forever(poll_interval=0.2)

    def shutdown(self) -> None:
        if self._serving.is_set():
            self._server.shutdown()
        self._server.server_close()


@dataclass
class _PendingRequest:
    done: threading.Event = field(default_factory=threading.Event)
    response: Optional[BrokerMessage] = None


class LineBrokerClient:
    """Transport connected to a LineBroker.

    Incoming messages and requests are handled on a single reader thread.
    """

    def __init__(self, host: str, port: int, timeout_seconds: float = 5.0) -> None:
        self.host = host
        self.port = port
        self.timeout_seconds = timeout_seconds
        try:
            self._sock = socket.create_connection((host, port), timeout=timeout_seconds)
        except OSError as exc:
            raise TransportError(f"Cannot connect to broker at {host}:{port}: {exc}") from exc
        self._sock.settimeout(None)
        self._rfile = self._sock.makefile("rb")
        self._write_lock = threading.Lock()
        self._lock = threading.Lock()
        self._subscriptions: List[Tuple[str, MessageCallback]] = []
        self._handlers: List[Tuple[str, RequestHandler]] = []
        self._pending: Dict[str, _PendingRequest] = {}
        self._closed = threading.Event()
        self._reader = threading.Thread(target=self._read_loop, daemon=True)
        self._reader.start()

    def __enter__(self) -> "LineBrokerClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _send(self, message: BrokerMessage) -> None:
        if self._closed.is_set():
            raise TransportError("Broker connection is closed.")
        with self._write_lock:
            try:
                self._sock.sendall(encode_message(message))
            except OSError as exc:
                raise TransportError(f"Broker connection lost: {exc}") from exc

    def publish(self, topic: str, payload: Any) -> None:
        self._send(BrokerMessage(op="publish", topic=topic, payload=payload))

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        with self._lock:
            self._subscriptions.append((topic, callback))
        self._send(BrokerMessage(op="subscribe", topic=topic))

    def on_request(self, topic: str, handler: RequestHandler) -> None:
        with self._lock:
            self._handlers.append((topic, handler))
        self._send(BrokerMessage(op="handle", topic=topic))

    def request(self, topic: str, payload: Any = None, timeout_seconds: Optional[float] = None) -> Any:
        """Send a request and block until its response arrives."""
        request_id = uuid.uuid4().hex
        pending = _PendingRequest()
        with self._lock:
            self._pending[request_id] = pending

        self._send(BrokerMessage(op="request", topic=topic, payload=payload, id=request_id))

        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        if not pending.done.wait(timeout):
            with self._lock:
                self._pending.pop(request_id, None)
            raise TransportError(f"Request on '{topic}' timed out after {timeout}s.")

        response = pending.response
        if response is None:
            raise TransportError("Broker connection closed before a response arrived.")
        if not response.ok:
            raise TransportError(response.error or f"Request on '{topic}' failed.")
        return response.payload

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()

    def _read_loop(self) -> None:
        try:
            for line in self._rfile:
                if not line.strip():
                    continue
                try:
                    message = BrokerMessage.model_validate_json(line)
                except ValidationError:
                    continue
                self._dispatch(message)
        except (OSError, ValueError):
            pass
        finally:
            self._closed.set()
            with self._lock:
                pending = list(self._pending.values())
                self._pending.clear()
            for waiting in pending:
                waiting.done.set()

    def _dispatch(self, message: BrokerMessage) -> None:
        if message.op == "message" and message.topic is not None:
            with self._lock:
                callbacks = [cb for pattern, cb in self._subscriptions if topic_matches(pattern, message.topic)]
            for callback in callbacks:
                callback(message.topic, message.payload)
        elif message.op == "request" and message.topic is not None:
            self._answer(message)
        elif message.op == "response":
            with self._lock:
                pending = self._pending.pop(message.id or "", None)
            if pending is not None:
                pending.response = message
                pending.done.set()

    def _answer(self, message: BrokerMessage) -> None:
        with self._lock:
            handler = next(
                (h for pattern, h in self._handlers if topic_matches(pattern, message.topic)),
                None,
            )
        try:
            if handler is None:
                raise LookupError(f"No local handler for '{message.topic}'.")
            payload = handler(message.topic, message.payload)
            response = BrokerMessage(op="response", topic=message.topic, id=message.id, payload=payload)
        except Exception as exc:
            response = BrokerMessage(op="response", topic=message.topic, id=message.id, ok=False, error=str(exc))
        try:
            self._send(response)
        except TransportError:
            pass
