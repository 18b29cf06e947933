from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nutella.config.loader import default_home_dir


class FrameworkSettings(BaseSettings):
    """
    Framework-level settings (the 'nutella' section in config.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='NUTELLA_', extra='ignore')

    home_dir: Path = Field(default_factory=default_home_dir)
    poll_interval_ms: int = Field(default=500, ge=10)
    tmux_bin: str = "tmux"

    @property
    def runlist_file(self) -> Path:
        return self.home_dir / "runlist.json"


class BrokerSettings(BaseModel):
    """
    Pub/sub broker settings (the 'broker' section in config.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    host: str = "localhost"
    port: int = Field(default=57881, ge=1, le=65535)
    # Overrides the command used to launch a local broker session
    command: Optional[str] = None


class AppEntry(BaseModel):
    """One application in the run list: where its files live and its runs."""
    model_config = ConfigDict(extra='ignore')

    path: str
    runs: List[str] = Field(min_length=1)

    @field_validator("runs")
    @classmethod
    def runs_are_unique(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("Run ids must be unique within an application.")
        return value


RunListAdapter = TypeAdapter(Dict[str, AppEntry])


class ProjectConfig(BaseModel):
    """
    Descriptor of a nutella application project (nutella.json).
    """
    model_config = ConfigDict(extra='allow')

    name: str
    version: Optional[str] = None
    description: Optional[str] = None
