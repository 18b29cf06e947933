from typing import Optional


class NutellaError(Exception):
    """Base class for errors raised by the nutella framework."""


class StorageError(NutellaError):
    """
    Exception raised when a persisted document cannot be read or written.
    Carries the offending file path so command output can point at it.
    """
    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        loc = f" ({path})" if path else ""
        super().__init__(f"Storage Error{loc}: {message}")


class LifecycleScriptError(NutellaError):
    """
    Exception raised on request when a bot lifecycle script exits with a
    non-zero status.
    """
    def __init__(self, script: str, actor: str, returncode: int):
        self.script = script
        self.actor = actor
        self.returncode = returncode
        super().__init__(f"Script '{script}' of bot '{actor}' exited with status {returncode}")


class TransportError(NutellaError):
    """Exception raised for broker connection failures and unanswered requests."""
