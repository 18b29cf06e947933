"""Session reconciliation and run lifecycle orchestration."""

from nutella.runtime.lifecycle import (
	LifecycleReport,
	RunLifecycleOrchestrator,
	RunOutcome,
	RunTarget,
	ScriptResult,
	extract_parameters,
	extract_run_target,
	for_each_actor,
	is_broker_local,
	list_actors,
	run_lifecycle_script,
	select_actors,
)
from nutella.runtime.reconciler import SessionReconciler, app_has_bots
from nutella.runtime.sessions import SessionChecker, SessionManager, TmuxSessions

__all__ = [
	"LifecycleReport",
	"RunLifecycleOrchestrator",
	"RunOutcome",
	"RunTarget",
	"ScriptResult",
	"SessionChecker",
	"SessionManager",
	"SessionReconciler",
	"TmuxSessions",
	"app_has_bots",
	"extract_parameters",
	"extract_run_target",
	"for_each_actor",
	"is_broker_local",
	"list_actors",
	"run_lifecycle_script",
	"select_actors",
]
