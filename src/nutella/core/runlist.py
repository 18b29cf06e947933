from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from pydantic import ValidationError

from nutella.core.models import AppEntry, RunListAdapter
from nutella.core.naming import DEFAULT_RUN_ID
from nutella.core.store import PersistedDocument
from nutella.utils.diagnostics import StorageError

if TYPE_CHECKING:
    from nutella.runtime.reconciler import SessionReconciler


class RunRegistry:
    """
    The list of applications and runs handled by the framework.

    The persisted document looks like::

        {
          "app_a": {"runs": ["default", "run_1"], "path": "/path/to/app_a"},
          "app_b": {"runs": ["run_3"], "path": "/path/to/app_b"}
        }

    Reads never reconcile on their own; call ``reconcile()`` to prune runs
    whose sessions are gone.
    """

    def __init__(self, store: PersistedDocument, reconciler: Optional["SessionReconciler"] = None):
        self._store = store
        self._reconciler = reconciler

    @property
    def store(self) -> PersistedDocument:
        return self._store

    def _load(self) -> Dict[str, AppEntry]:
        try:
            return RunListAdapter.validate_python(self._store.load())
        except ValidationError as exc:
            raise StorageError(f"Invalid run list: {exc}", path=str(self._store.path)) from exc

    def _save(self, apps: Dict[str, AppEntry]) -> None:
        self._store.save(RunListAdapter.dump_python(apps, mode="json"))

    def all_apps(self) -> List[str]:
        """Return the ids of all the apps in the run list."""
        return list(self._load().keys())

    def all_runs(self) -> Dict[str, AppEntry]:
        """Return the whole run list."""
        return self._load()

    def runs_for_app(self, app_id: str) -> List[str]:
        """Return the run ids of an app, or an empty list if the app is unknown."""
        entry = self._load().get(app_id)
        if entry is None:
            return []
        return list(entry.runs)

    def path_for_app(self, app_id: str) -> Optional[str]:
        entry = self._load().get(app_id)
        return entry.path if entry is not None else None

    def add(self, app_id: str, run_id: Optional[str], path: str) -> bool:
        """
        Add a run to the list. A missing run id means the "default" run.
        Returns False if the app already has a run with this id.
        """
        if run_id is None:
            run_id = DEFAULT_RUN_ID

        apps = self._load()
        entry = apps.get(app_id)
        if entry is None:
            apps[app_id] = AppEntry(path=path, runs=[run_id])
        else:
            if run_id in entry.runs:
                return False
            entry.runs.append(run_id)

        self._save(apps)
        return True

    def delete(self, app_id: str, run_id: str) -> bool:
        """
        Remove a run from the list, dropping the app once its last run is gone.
        Returns True only if a run was actually removed.
        """
        apps = self._load()
        entry = apps.get(app_id)
        if entry is None:
            return False

        if run_id not in entry.runs:
            return False

        entry.runs.remove(run_id)
        if not entry.runs:
            del apps[app_id]
        self._save(apps)
        return True

    def contains(self, app_id: str, run_id: str) -> bool:
        entry = self._load().get(app_id)
        return entry is not None and run_id in entry.runs

    def __contains__(self, item: Tuple[str, str]) -> bool:
        app_id, run_id = item
        return self.contains(app_id, run_id)

    def empty(self) -> bool:
        return not self._load()

    def remove_file(self) -> bool:
        """Remove the run list file altogether."""
        return self._store.remove_file()

    def reconcile(self) -> List[Tuple[str, str]]:
        """Prune runs whose sessions are gone. Returns the pruned (app, run) pairs."""
        if self._reconciler is None:
            return []
        return self._reconciler.reconcile(self)
