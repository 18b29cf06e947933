import pytest
import stat
import sys
from pathlib import Path

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from nutella.core.runlist import RunRegistry
from nutella.core.store import PersistedDocument


class FakeSessions:
    """In-memory stand-in for the tmux session manager."""

    def __init__(self, live=None):
        self.live = set(live or [])
        self.windows = []
        self.created = []
        self.killed = []

    def session_exists(self, name):
        return name in self.live

    def new_session(self, name, cwd=None, command=None):
        self.created.append((name, cwd, command))
        self.live.add(name)
        return True

    def new_window(self, session, window, cwd, command):
        self.windows.append((session, window, cwd, command))
        return True

    def kill_session(self, name):
        self.killed.append(name)
        if name in self.live:
            self.live.discard(name)
            return True
        return False


def write_script(path: Path, body: str = "exit 0") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def home_dir(tmp_path):
    """
    Returns a temporary framework home directory.
    """
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def store(home_dir):
    return PersistedDocument(home_dir / "runlist.json")


@pytest.fixture
def registry(store):
    return RunRegistry(store)


@pytest.fixture
def sessions():
    return FakeSessions()


@pytest.fixture
def make_project(tmp_path):
    """
    Factory creating an application folder with the given bots.
    ``bots`` maps bot name -> {script name: shell body}.
    """
    def factory(name="app_a", bots=None):
        project = tmp_path / name
        (project / "bots").mkdir(parents=True)
        (project / "nutella.json").write_text(f'{{"name": "{name}", "version": "0.1.0"}}')
        for bot, scripts in (bots or {}).items():
            (project / "bots" / bot).mkdir()
            for script, body in scripts.items():
                write_script(project / "bots" / bot / script, body)
        return project

    return factory
