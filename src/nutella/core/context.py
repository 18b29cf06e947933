from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from nutella.config.loader import config_path, default_home_dir, load_config
from nutella.core.models import BrokerSettings, FrameworkSettings
from nutella.core.runlist import RunRegistry
from nutella.core.store import PersistedDocument
from nutella.runtime.lifecycle import RunLifecycleOrchestrator
from nutella.runtime.reconciler import SessionReconciler
from nutella.runtime.sessions import TmuxSessions


class FrameworkContext(BaseModel):
    """
    Everything a command or bot needs, built once and passed around explicitly.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    # Framework Settings (Maps to 'nutella' section)
    settings: FrameworkSettings = Field(default_factory=FrameworkSettings)

    # Broker Settings (Maps to 'broker' section)
    broker: BrokerSettings = Field(default_factory=BrokerSettings)

    # Session manager used for liveness checks and run sessions
    sessions: Any = None

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, **data: Any):
        """
        Initialize the context, optionally with a configuration dictionary.
        """
        if config_dict:
            if 'settings' not in data:
                data['settings'] = FrameworkSettings(**config_dict.get('nutella', {}))
            if 'broker' not in data:
                data['broker'] = BrokerSettings(**config_dict.get('broker', {}))

        super().__init__(**data)

    def model_post_init(self, __context: Any) -> None:
        if self.sessions is None:
            self.sessions = TmuxSessions(self.settings.tmux_bin)

    @classmethod
    def from_home(cls, home_dir: Optional[Path] = None, **data: Any) -> "FrameworkContext":
        """Build a context from ``<home_dir>/config.yaml``."""
        home = (home_dir or default_home_dir()).expanduser()
        config_data = load_config(config_path(home))
        nutella_section = dict(config_data.get('nutella') or {})
        nutella_section.setdefault('home_dir', home)
        config_data['nutella'] = nutella_section
        return cls(config_dict=config_data, **data)

    def store(self) -> PersistedDocument:
        return PersistedDocument(self.settings.runlist_file)

    def runlist(self, reconcile: bool = True) -> RunRegistry:
        """
        Return the run list bound to this context, reconciled against live
        sessions unless ``reconcile`` is False.
        """
        registry = RunRegistry(self.store(), reconciler=SessionReconciler(self.sessions))
        if reconcile:
            registry.reconcile()
        return registry

    def orchestrator(self, abort_on_failure: bool = False) -> RunLifecycleOrchestrator:
        return RunLifecycleOrchestrator(
            registry=self.runlist(),
            sessions=self.sessions,
            broker=self.broker,
            abort_on_failure=abort_on_failure,
        )
