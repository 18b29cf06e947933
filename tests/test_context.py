from conftest import FakeSessions

from nutella.core.context import FrameworkContext
from nutella.core.project import load_project
from nutella.runtime.sessions import TmuxSessions


def test_context_init_with_config(tmp_path):
    config_data = {
        "nutella": {
            "home_dir": str(tmp_path),
            "poll_interval_ms": 200,
            "tmux_bin": "/opt/tmux",
        },
        "broker": {
            "host": "10.1.1.1",
            "port": 1999,
            "command": "start-broker",
        },
    }

    ctx = FrameworkContext(config_dict=config_data)

    assert ctx.settings.home_dir == tmp_path
    assert ctx.settings.poll_interval_ms == 200
    assert ctx.settings.runlist_file == tmp_path / "runlist.json"
    assert ctx.broker.host == "10.1.1.1"
    assert ctx.broker.port == 1999
    assert ctx.broker.command == "start-broker"
    assert isinstance(ctx.sessions, TmuxSessions)
    assert ctx.sessions.tmux_bin == "/opt/tmux"


def test_context_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("NUTELLA_HOME_DIR", str(tmp_path))

    ctx = FrameworkContext()

    assert ctx.settings.home_dir == tmp_path
    assert ctx.settings.poll_interval_ms == 500
    assert ctx.broker.host == "localhost"


def test_context_from_home_reads_config_yaml(home_dir):
    (home_dir / "config.yaml").write_text("""
broker:
  host: broker.example.org
nutella:
  poll_interval_ms: 100
""")

    ctx = FrameworkContext.from_home(home_dir, sessions=FakeSessions())

    assert ctx.settings.home_dir == home_dir
    assert ctx.settings.poll_interval_ms == 100
    assert ctx.broker.host == "broker.example.org"


def test_runlist_reconciles_on_access(home_dir, make_project):
    project = make_project("app_a", bots={"bot_a": {}})
    sessions = FakeSessions(live={"app_a_alive"})
    ctx = FrameworkContext.from_home(home_dir, sessions=sessions)
    unreconciled = ctx.runlist(reconcile=False)
    unreconciled.add("app_a", "alive", str(project))
    unreconciled.add("app_a", "dead", str(project))

    assert unreconciled.runs_for_app("app_a") == ["alive", "dead"]
    assert ctx.runlist().runs_for_app("app_a") == ["alive"]


def test_orchestrator_is_bound_to_context(home_dir):
    sessions = FakeSessions()
    ctx = FrameworkContext.from_home(home_dir, sessions=sessions)

    orchestrator = ctx.orchestrator(abort_on_failure=True)

    assert orchestrator.sessions is sessions
    assert orchestrator.broker == ctx.broker
    assert orchestrator.abort_on_failure is True
    assert orchestrator.registry.store.path == home_dir / "runlist.json"


def test_load_project_reads_descriptor(make_project):
    project = make_project("my_app")

    assert load_project(project).name == "my_app"
    assert load_project(project).version == "0.1.0"


def test_load_project_falls_back_to_directory_name(tmp_path):
    project = tmp_path / "plain_dir"
    project.mkdir()
    (project / "nutella.json").write_text("{broken")

    assert load_project(project).name == "plain_dir"
