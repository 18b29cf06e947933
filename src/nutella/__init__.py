"""Run registry, session reconciliation and run lifecycle tooling for nutella."""

from nutella.core.context import FrameworkContext
from nutella.core.models import AppEntry, BrokerSettings, FrameworkSettings
from nutella.core.runlist import RunRegistry
from nutella.core.store import PersistedDocument
from nutella.utils.diagnostics import LifecycleScriptError, NutellaError, StorageError, TransportError

__version__ = "0.1.0"

__all__ = [
	"AppEntry",
	"BrokerSettings",
	"FrameworkContext",
	"FrameworkSettings",
	"LifecycleScriptError",
	"NutellaError",
	"PersistedDocument",
	"RunRegistry",
	"StorageError",
	"TransportError",
]
