from __future__ import annotations

import time
from typing import Callable, Dict, Optional

from nutella.cli.formatter import OutputFormatter
from nutella.core.models import AppEntry
from nutella.core.runlist import RunRegistry
from nutella.net.topics import RUNS_LIST_CHANNEL, app_topic
from nutella.net.transport import Transport


class RunListNotifier:
    """Polls the run list and re-broadcasts every app's runs when it changes.

    The whole document is compared between polls, so any change triggers a
    publish to every application currently in the run list.
    """

    def __init__(
        self,
        registry: RunRegistry,
        transport: Transport,
        interval_ms: int = 500,
        sleep: Callable[[float], None] = time.sleep,
        channel: str = RUNS_LIST_CHANNEL,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.interval_ms = interval_ms
        self.sleep = sleep
        self.channel = channel
        self.broadcasts = 0

    def snapshot(self) -> Dict[str, AppEntry]:
        """Reconcile, then read the whole run list."""
        self.registry.reconcile()
        return self.registry.all_runs()

    def broadcast(self) -> int:
        """Publish the runs of every app to its own topic. Returns the publish count."""
        published = 0
        for app_id in self.registry.all_apps():
            self.transport.publish(app_topic(app_id, self.channel), self.registry.runs_for_app(app_id))
            published += 1
        self.broadcasts += 1
        return published

    def poll(self, previous: Dict[str, AppEntry]) -> Dict[str, AppEntry]:
        """Wait one interval, take a new snapshot and broadcast if it differs."""
        self.sleep(self.interval_ms / 1000.0)
        current = self.snapshot()
        if current != previous:
            published = self.broadcast()
            OutputFormatter.log(f"Run list changed, notified {published} app(s).", severity="info")
        return current

    def run(self, max_polls: Optional[int] = None) -> None:
        """Poll until the process is terminated, or for ``max_polls`` cycles."""
        previous = self.snapshot()
        polls = 0
        while max_polls is None or polls < max_polls:
            previous = self.poll(previous)
            polls += 1
