from nutella.bots.notifier import RunListNotifier
from nutella.core.models import AppEntry
from nutella.net.transport import InMemoryTransport


class ScriptedRegistry:
    """Registry returning a fixed sequence of snapshots, one per read."""

    def __init__(self, snapshots):
        self.snapshots = list(snapshots)
        self.current = {}
        self.reconciled = 0

    def reconcile(self):
        self.reconciled += 1
        return []

    def all_runs(self):
        self.current = self.snapshots.pop(0)
        return self.current

    def all_apps(self):
        return list(self.current.keys())

    def runs_for_app(self, app_id):
        entry = self.current.get(app_id)
        return list(entry.runs) if entry else []


def _snapshot(*runs):
    return {"app_a": AppEntry(path="/tmp/app_a", runs=list(runs))}


def test_notifier_publishes_once_per_change():
    s0 = _snapshot("r0")
    s1 = _snapshot("r0", "r1")
    s1_again = _snapshot("r0", "r1")
    s2 = _snapshot("r1")
    registry = ScriptedRegistry([s0, s1, s1_again, s2])
    transport = InMemoryTransport()
    sleeps = []
    notifier = RunListNotifier(registry, transport, sleep=sleeps.append)

    notifier.run(max_polls=3)

    assert transport.published == [
        ("/nutella/apps/app_a/app_runs_list", ["r0", "r1"]),
        ("/nutella/apps/app_a/app_runs_list", ["r1"]),
    ]
    assert notifier.broadcasts == 2
    assert sleeps == [0.5, 0.5, 0.5]
    assert registry.reconciled == 4


def test_notifier_broadcasts_to_every_app(registry):
    transport = InMemoryTransport()
    notifier = RunListNotifier(registry, transport, sleep=lambda _: None)
    previous = notifier.snapshot()

    registry.add("app_a", "r1", "/tmp/app_a")
    registry.add("app_b", None, "/tmp/app_b")
    previous = notifier.poll(previous)

    assert transport.published_to("/nutella/apps/app_a/app_runs_list") == [["r1"]]
    assert transport.published_to("/nutella/apps/app_b/app_runs_list") == [["default"]]

    notifier.poll(previous)
    assert len(transport.published) == 2


def test_notifier_stays_quiet_without_changes(registry):
    registry.add("app_a", "r1", "/tmp/app_a")
    transport = InMemoryTransport()
    notifier = RunListNotifier(registry, transport, interval_ms=100, sleep=lambda _: None)

    notifier.run(max_polls=5)

    assert transport.published == []
    assert notifier.broadcasts == 0
