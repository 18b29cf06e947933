from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Protocol


class SessionChecker(Protocol):
    """Anything that can tell whether a named process session is alive."""

    def session_exists(self, name: str) -> bool:
        ...


class SessionManager(SessionChecker, Protocol):
    """Session operations used by run start/stop."""

    def new_session(self, name: str, cwd: Optional[Path] = None, command: Optional[str] = None) -> bool:
        ...

    def new_window(self, session: str, window: str, cwd: Path, command: str) -> bool:
        ...

    def kill_session(self, name: str) -> bool:
        ...


class TmuxSessions:
    """Session manager backed by the tmux binary.

    A missing tmux binary is treated like a server with no sessions.
    """

    def __init__(self, tmux_bin: str = "tmux") -> None:
        self.tmux_bin = tmux_bin

    def _tmux(self, *args: str) -> subprocess.CompletedProcess | None:
        try:
            return subprocess.run(
                [self.tmux_bin, *args],
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError:
            return None

    def session_exists(self, name: str) -> bool:
        """Return True when a tmux session with exactly this name exists."""
        result = self._tmux("has-session", "-t", f"={name}")
        return result is not None and result.returncode == 0

    def list_sessions(self) -> List[str]:
        result = self._tmux("list-sessions", "-F", "#{session_name}")
        if result is None or result.returncode != 0:
            return []
        return [line for line in result.stdout.splitlines() if line]

    def new_session(self, name: str, cwd: Optional[Path] = None, command: Optional[str] = None) -> bool:
        """Create a detached session. Returns False if tmux refused."""
        args = ["new-session", "-d", "-s", name]
        if cwd is not None:
            args.extend(["-c", str(cwd)])
        if command:
            args.append(command)
        result = self._tmux(*args)
        return result is not None and result.returncode == 0

    def new_window(self, session: str, window: str, cwd: Path, command: str) -> bool:
        result = self._tmux("new-window", "-t", f"={session}:", "-n", window, "-c", str(cwd), command)
        return result is not None and result.returncode == 0

    def kill_session(self, name: str) -> bool:
        result = self._tmux("kill-session", "-t", f"={name}")
        return result is not None and result.returncode == 0
