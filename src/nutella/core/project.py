import json
from pathlib import Path

from pydantic import ValidationError

from nutella.core.models import ProjectConfig


def project_descriptor_path(root_dir: Path) -> Path:
    return root_dir / "nutella.json"


def is_nutella_project(root_dir: Path) -> bool:
    return project_descriptor_path(root_dir).is_file()


def load_project(root_dir: Path) -> ProjectConfig:
    """
    Read the project's nutella.json. The directory name stands in for the
    application name when the descriptor is missing or unusable.
    """
    root_dir = root_dir.expanduser().resolve()
    descriptor = project_descriptor_path(root_dir)
    if descriptor.is_file():
        try:
            payload = json.loads(descriptor.read_text(encoding="utf-8"))
            return ProjectConfig.model_validate(payload)
        except (OSError, json.JSONDecodeError, ValidationError):
            pass
    return ProjectConfig(name=root_dir.name)
