from __future__ import annotations

from typing import Any, List

from nutella.core.runlist import RunRegistry
from nutella.net.topics import RUNS_LIST_CHANNEL, all_apps_topic, app_id_from_topic
from nutella.net.transport import Transport


class RunListResponder:
    """Answers run list requests sent by application components."""

    def __init__(self, registry: RunRegistry, transport: Transport, channel: str = RUNS_LIST_CHANNEL) -> None:
        self.registry = registry
        self.transport = transport
        self.channel = channel

    def register(self) -> None:
        self.transport.on_request(all_apps_topic(self.channel), self.handle)

    def handle(self, topic: str, request: Any = None) -> List[str]:
        app_id = app_id_from_topic(topic)
        if app_id is None:
            return []
        self.registry.reconcile()
        return self.registry.runs_for_app(app_id)
