DEFAULT_RUN_ID = "default"

BROKER_SESSION_NAME = "nutella_broker"

SESSION_NAME_TRANSLATION = str.maketrans({".": "_", ":": "_"})


def default_run_id() -> str:
    """Return the run id used when no run name is given.

    Unnamed invocations always resolve to the same id, so starting an
    unnamed run twice targets the same registry entry.
    """
    return DEFAULT_RUN_ID


def derive_run_id(run_name: str | None) -> str:
    """Derive the registry run id for an explicit run name."""
    if run_name is None or not run_name.strip():
        return default_run_id()
    return run_name.strip()


def session_name(app_id: str, run_id: str) -> str:
    """Build the deterministic session name for an (app, run) pair.

    tmux stores '.' and ':' in session names as '_', so they are replaced
    here too.
    """
    return f"{app_id}_{run_id}".translate(SESSION_NAME_TRANSLATION)
