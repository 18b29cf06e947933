import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]+))?\}")

ALLOWED_SECTIONS = {"nutella", "broker"}


def interpolate_env_vars(content: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variables."""
    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, content)


def default_home_dir() -> Path:
    """Return the per-user framework home directory (``~/.nutella`` unless overridden)."""
    override = os.environ.get("NUTELLA_HOME_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".nutella"


def config_path(home_dir: Path) -> Path:
    return home_dir / "config.yaml"


def load_config(path: Path) -> Dict[str, Any]:
    """
    Load config.yaml with environment variable interpolation.

    Only the ``nutella`` and ``broker`` sections are kept. A missing or
    unreadable file yields an empty dict so the framework falls back to
    its defaults.
    """
    if not path.exists():
        return {}

    try:
        content = path.read_text()
        interpolated_content = interpolate_env_vars(content)
        full_config = yaml.safe_load(interpolated_content) or {}
    except (OSError, yaml.YAMLError):
        return {}

    if not isinstance(full_config, dict):
        return {}

    return {k: v for k, v in full_config.items() if k in ALLOWED_SECTIONS}
