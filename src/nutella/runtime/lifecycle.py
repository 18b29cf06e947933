from __future__ import annotations

import shlex
import socket
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

import psutil
from pydantic import BaseModel, Field

from nutella.cli.formatter import OutputFormatter
from nutella.core.models import BrokerSettings
from nutella.core.naming import BROKER_SESSION_NAME, default_run_id, derive_run_id, session_name
from nutella.core.runlist import RunRegistry
from nutella.runtime.sessions import SessionManager
from nutella.utils.diagnostics import LifecycleScriptError

FLAG_PREFIX = "-"
WITH_FLAGS = ("-w", "--with")
WITHOUT_FLAGS = ("-wo", "--without")
LOCAL_BROKER_NAMES = {"localhost", "127.0.0.1"}

DEPENDENCIES_SCRIPT = "dependencies"
COMPILE_SCRIPT = "compile"
STARTUP_SCRIPT = "startup"

# Exit status reported for scripts that could not be executed at all
NOT_EXECUTABLE_STATUS = 126


@dataclass(frozen=True)
class RunTarget:
    """Run name and id extracted from command tokens, plus the leftover tokens."""

    run_name: Optional[str]
    run_id: str
    args: List[str] = field(default_factory=list)


class ScriptResult(BaseModel):
    """Outcome of one lifecycle script execution."""

    actor: str
    script: str
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class LifecycleReport(BaseModel):
    """Outcome of running one lifecycle script across all bots of a project."""

    script: str
    results: List[ScriptResult] = Field(default_factory=list)
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    def failures(self) -> List[ScriptResult]:
        return [result for result in self.results if not result.ok]

    def raise_for_failure(self) -> None:
        """Raise LifecycleScriptError for the first failed script, if any."""
        failures = self.failures()
        if failures:
            first = failures[0]
            raise LifecycleScriptError(first.script, first.actor, first.returncode)


class RunOutcome(BaseModel):
    """Result of a start or stop request."""

    app_id: str
    run_id: str
    run_name: Optional[str] = None
    ok: bool
    message: str
    actors: List[str] = Field(default_factory=list)
    reports: List[LifecycleReport] = Field(default_factory=list)


def extract_run_target(
    args: Optional[List[str]],
    run_id_factory: Callable[[], str] = default_run_id,
) -> RunTarget:
    """Split an optional leading run name off the command tokens.

    When the first token is a flag (or there are no tokens) the run is
    unnamed and its id comes from ``run_id_factory``.
    """
    tokens = list(args or [])
    if not tokens or tokens[0].startswith(FLAG_PREFIX):
        return RunTarget(run_name=None, run_id=run_id_factory(), args=tokens)

    run_name = tokens.pop(0)
    return RunTarget(run_name=run_name, run_id=derive_run_id(run_name), args=tokens)


def _split_values(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def extract_parameters(args: Optional[List[str]]) -> Dict[str, List[str]]:
    """Parse the ``--with``/``--without`` actor lists; other tokens are ignored.

    Values are comma separated and repeated flags accumulate.
    """
    options: Dict[str, List[str]] = {"with": [], "without": []}
    tokens = list(args or [])

    index = 0
    while index < len(tokens):
        token = tokens[index]
        name, separator, inline_value = token.partition("=")

        if name in WITH_FLAGS:
            key = "with"
        elif name in WITHOUT_FLAGS:
            key = "without"
        else:
            index += 1
            continue

        if separator:
            options[key].extend(_split_values(inline_value))
            index += 1
            continue

        if index + 1 < len(tokens) and not tokens[index + 1].startswith(FLAG_PREFIX):
            options[key].extend(_split_values(tokens[index + 1]))
            index += 2
            continue

        index += 1

    return options


def list_actors(bots_dir: Path) -> List[str]:
    """Return the bot directory names found in ``bots_dir``, sorted."""
    bots_dir = Path(bots_dir)
    if not bots_dir.is_dir():
        return []
    return sorted(entry.name for entry in bots_dir.iterdir() if entry.is_dir())


def for_each_actor(bots_dir: Path, fn: Callable[[str], None]) -> None:
    for actor in list_actors(bots_dir):
        fn(actor)


def select_actors(actors: Iterable[str], options: Dict[str, List[str]]) -> List[str]:
    """Apply ``with``/``without`` filters. ``with`` wins when both are given."""
    available = list(actors)
    wanted = options.get("with") or []
    if wanted:
        return [actor for actor in available if actor in wanted]
    unwanted = set(options.get("without") or [])
    return [actor for actor in available if actor not in unwanted]


def run_lifecycle_script(
    project_dir: Path,
    script: str,
    message: str,
    abort_on_failure: bool = False,
) -> LifecycleReport:
    """Run ``bots/<actor>/<script>`` for every bot that has it, one at a time.

    Each script runs with its bot folder as working directory. Failures are
    recorded and, unless ``abort_on_failure`` is set, the next bot still runs.
    """
    bots_dir = Path(project_dir) / "bots"
    report = LifecycleReport(script=script)

    for actor in list_actors(bots_dir):
        actor_dir = bots_dir / actor
        if not (actor_dir / script).exists():
            continue

        OutputFormatter.log(f"{message} bot {actor}.", severity="info")
        try:
            completed = subprocess.run(
                [f"./{script}"],
                cwd=actor_dir,
                capture_output=True,
                text=True,
                check=False,
            )
            result = ScriptResult(
                actor=actor,
                script=script,
                returncode=completed.returncode,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
            )
        except OSError as exc:
            result = ScriptResult(
                actor=actor,
                script=script,
                returncode=NOT_EXECUTABLE_STATUS,
                stderr=str(exc),
            )

        report.results.append(result)
        if result.ok:
            continue

        OutputFormatter.log(
            f"Script '{script}' of bot {actor} exited with status {result.returncode}.",
            severity="warning",
        )
        if abort_on_failure:
            report.aborted = True
            break

    return report


def host_ipv4_addresses() -> Set[str]:
    """Return the IPv4 addresses bound to this host's network interfaces."""
    addresses: Set[str] = set()
    for interface_addresses in psutil.net_if_addrs().values():
        for address in interface_addresses:
            if address.family == socket.AF_INET:
                addresses.add(address.address)
    return addresses


def is_broker_local(broker: str, addresses: Optional[Set[str]] = None) -> bool:
    """Return True when the broker runs on this host."""
    if broker in LOCAL_BROKER_NAMES:
        return True
    if addresses is None:
        addresses = host_ipv4_addresses()
    return broker in addresses


class RunLifecycleOrchestrator:
    """Starts and stops runs: registry bookkeeping, bot scripts and sessions."""

    def __init__(
        self,
        registry: RunRegistry,
        sessions: SessionManager,
        broker: Optional[BrokerSettings] = None,
        run_id_factory: Callable[[], str] = default_run_id,
        abort_on_failure: bool = False,
    ) -> None:
        self.registry = registry
        self.sessions = sessions
        self.broker = broker or BrokerSettings()
        self.run_id_factory = run_id_factory
        self.abort_on_failure = abort_on_failure

    @property
    def broker_address(self) -> str:
        return f"{self.broker.host}:{self.broker.port}"

    def broker_command(self) -> str:
        if self.broker.command:
            return self.broker.command
        return shlex.join(
            [
                sys.executable,
                "-m",
                "nutella.cli.main",
                "broker",
                "--host",
                self.broker.host,
                "--port",
                str(self.broker.port),
            ]
        )

    def broker_is_local(self) -> bool:
        return is_broker_local(self.broker.host)

    def ensure_local_broker(self) -> bool:
        """Start the local broker session unless it is already up."""
        if self.sessions.session_exists(BROKER_SESSION_NAME):
            return False
        started = self.sessions.new_session(BROKER_SESSION_NAME, command=self.broker_command())
        if started:
            OutputFormatter.log(f"Started local broker at {self.broker_address}.", severity="info")
        else:
            OutputFormatter.log(f"Could not start local broker at {self.broker_address}.", severity="error")
        return started

    def stop_local_broker(self) -> bool:
        stopped = self.sessions.kill_session(BROKER_SESSION_NAME)
        if stopped:
            OutputFormatter.log("Stopped local broker.", severity="info")
        return stopped

    def start_run(self, project_dir: Path, app_id: str, args: Optional[List[str]] = None) -> RunOutcome:
        project_dir = Path(project_dir).resolve()
        target = extract_run_target(args, self.run_id_factory)
        options = extract_parameters(target.args)

        if not self.registry.add(app_id, target.run_id, str(project_dir)):
            return RunOutcome(
                app_id=app_id,
                run_id=target.run_id,
                run_name=target.run_name,
                ok=False,
                message=f"Run '{target.run_id}' of {app_id} is already running.",
            )

        if self.broker_is_local():
            self.ensure_local_broker()

        reports: List[LifecycleReport] = []
        for script, message in (
            (DEPENDENCIES_SCRIPT, "Installing dependencies for"),
            (COMPILE_SCRIPT, "Compiling"),
        ):
            report = run_lifecycle_script(project_dir, script, message, self.abort_on_failure)
            reports.append(report)
            if report.aborted:
                self.registry.delete(app_id, target.run_id)
                return RunOutcome(
                    app_id=app_id,
                    run_id=target.run_id,
                    run_name=target.run_name,
                    ok=False,
                    message=f"Run '{target.run_id}' of {app_id} aborted: '{script}' failed.",
                    reports=reports,
                )

        bots_dir = project_dir / "bots"
        actors = list_actors(bots_dir)
        started: List[str] = []
        if actors:
            session = session_name(app_id, target.run_id)
            self.sessions.new_session(session, cwd=project_dir)
            for actor in select_actors(actors, options):
                actor_dir = bots_dir / actor
                if not (actor_dir / STARTUP_SCRIPT).exists():
                    continue
                command = shlex.join([f"./{STARTUP_SCRIPT}", self.broker_address, app_id, target.run_id])
                if self.sessions.new_window(session, actor, actor_dir, command):
                    started.append(actor)
                else:
                    OutputFormatter.log(f"Could not start bot {actor}.", severity="error")

        return RunOutcome(
            app_id=app_id,
            run_id=target.run_id,
            run_name=target.run_name,
            ok=True,
            message=self._success_message(app_id, target, "started"),
            actors=started,
            reports=reports,
        )

    def stop_run(self, app_id: str, args: Optional[List[str]] = None) -> RunOutcome:
        target = extract_run_target(args, self.run_id_factory)

        if not self.registry.delete(app_id, target.run_id):
            return RunOutcome(
                app_id=app_id,
                run_id=target.run_id,
                run_name=target.run_name,
                ok=False,
                message=f"Run '{target.run_id}' of {app_id} is not running.",
            )

        self.sessions.kill_session(session_name(app_id, target.run_id))

        if self.registry.empty() and self.broker_is_local():
            self.stop_local_broker()

        return RunOutcome(
            app_id=app_id,
            run_id=target.run_id,
            run_name=target.run_name,
            ok=True,
            message=self._success_message(app_id, target, "stopped"),
        )

    @staticmethod
    def _success_message(app_id: str, target: RunTarget, action: str) -> str:
        if target.run_name is None:
            return f"Project {app_id} {action}!"
        return f"Project {app_id}, run {target.run_name} {action}!"
