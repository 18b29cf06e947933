import subprocess

from nutella.runtime.sessions import TmuxSessions


class RecordingRun:
    def __init__(self, returncode=0, stdout="", missing=False):
        self.returncode = returncode
        self.stdout = stdout
        self.missing = missing
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append(args)
        if self.missing:
            raise FileNotFoundError(args[0])
        return subprocess.CompletedProcess(args, self.returncode, stdout=self.stdout, stderr="")


def test_session_exists_uses_exact_target(monkeypatch):
    run = RecordingRun(returncode=0)
    monkeypatch.setattr("nutella.runtime.sessions.subprocess.run", run)

    assert TmuxSessions("tmux").session_exists("app_a_default") is True
    assert run.calls == [["tmux", "has-session", "-t", "=app_a_default"]]


def test_session_missing_when_tmux_says_so(monkeypatch):
    monkeypatch.setattr("nutella.runtime.sessions.subprocess.run", RecordingRun(returncode=1))

    assert TmuxSessions().session_exists("app_a_default") is False


def test_missing_tmux_binary_means_no_sessions(monkeypatch):
    monkeypatch.setattr("nutella.runtime.sessions.subprocess.run", RecordingRun(missing=True))
    sessions = TmuxSessions("no-such-tmux")

    assert sessions.session_exists("x") is False
    assert sessions.list_sessions() == []
    assert sessions.new_session("x") is False
    assert sessions.kill_session("x") is False


def test_new_session_and_window_commands(monkeypatch, tmp_path):
    run = RecordingRun(returncode=0)
    monkeypatch.setattr("nutella.runtime.sessions.subprocess.run", run)
    sessions = TmuxSessions()

    assert sessions.new_session("app_a_r1", cwd=tmp_path) is True
    assert sessions.new_window("app_a_r1", "bot_a", tmp_path, "./startup b a r1") is True
    assert sessions.kill_session("app_a_r1") is True

    assert run.calls == [
        ["tmux", "new-session", "-d", "-s", "app_a_r1", "-c", str(tmp_path)],
        ["tmux", "new-window", "-t", "=app_a_r1:", "-n", "bot_a", "-c", str(tmp_path), "./startup b a r1"],
        ["tmux", "kill-session", "-t", "=app_a_r1"],
    ]


def test_list_sessions(monkeypatch):
    monkeypatch.setattr("nutella.runtime.sessions.subprocess.run", RecordingRun(stdout="a_default\nb_r1\n"))

    assert TmuxSessions().list_sessions() == ["a_default", "b_r1"]
