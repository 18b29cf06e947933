from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

from nutella.cli.formatter import OutputFormatter
from nutella.core.naming import session_name
from nutella.runtime.sessions import SessionChecker

if TYPE_CHECKING:
    from nutella.core.runlist import RunRegistry


def app_has_bots(app_path: Optional[str]) -> bool:
    """Return True when ``<app_path>/bots`` holds at least one bot directory."""
    if not app_path:
        return False
    bots_dir = Path(app_path) / "bots"
    if not bots_dir.is_dir():
        return False
    return any(entry.is_dir() for entry in bots_dir.iterdir())


class SessionReconciler:
    """Prunes runs whose backing session is no longer alive.

    Apps without bots never own a session, so their runs are left alone.
    """

    def __init__(self, sessions: SessionChecker) -> None:
        self.sessions = sessions

    def reconcile(self, registry: "RunRegistry") -> List[Tuple[str, str]]:
        pruned: List[Tuple[str, str]] = []

        for app_id, entry in registry.all_runs().items():
            if not app_has_bots(entry.path):
                continue
            for run_id in entry.runs:
                if self.sessions.session_exists(session_name(app_id, run_id)):
                    continue
                if registry.delete(app_id, run_id):
                    pruned.append((app_id, run_id))

        for app_id, run_id in pruned:
            OutputFormatter.log(
                f"Removed run '{run_id}' of '{app_id}' from the run list: its session is gone.",
                severity="warning",
            )
        return pruned
