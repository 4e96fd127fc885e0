"""Configuration loading.

The configuration is read once at startup into an immutable ``LagConfig``
that every component receives explicitly. Values come from defaults, then
``config.toml`` in the config directory, then command-line overrides.

Example ``~/.brew-lag/config.toml``::

    offset = 3
    jobs = 8
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import tomlkit
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CONFIG_DIR = Path("~/.brew-lag")
CONFIG_DIR_ENV = "BREW_LAG_HOME"


class LagConfig(BaseModel):
    """Immutable settings threaded through a run.

    Attributes:
        offset: Number of distinct versions to stay behind latest.
        jobs: Worker processes used by the mining and dependency phases.
        config_dir: Directory holding exceptions, cache and plan files.
    """

    model_config = ConfigDict(frozen=True)

    offset: int = Field(default=4, ge=0)
    jobs: int = Field(default=4, ge=1)
    config_dir: Path = DEFAULT_CONFIG_DIR.expanduser()

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.toml"

    @property
    def exceptions_path(self) -> Path:
        return self.config_dir / "exceptions"

    @property
    def cache_path(self) -> Path:
        return self.config_dir / "cache.db"

    @property
    def plan_path(self) -> Path:
        return self.config_dir / "plan.json"

    @property
    def snapshot_path(self) -> Path:
        return self.config_dir / "resolved.json"

    def ensure_dir(self) -> None:
        """Create the config directory and an empty exception list."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.exceptions_path.touch(exist_ok=True)


def resolve_config_dir(config_dir: str | Path | None = None) -> Path:
    """Pick the config directory: explicit value, then env var, then default."""
    if config_dir is None:
        config_dir = os.environ.get(CONFIG_DIR_ENV) or DEFAULT_CONFIG_DIR
    return Path(config_dir).expanduser()


def read_config_file(path: Path) -> dict[str, Any]:
    """Read the supported keys from a config.toml, if it exists.

    Unknown keys are ignored so older tools can share a config directory.
    """
    if not path.exists():
        return {}
    doc = tomlkit.parse(path.read_text()).unwrap()
    return {key: doc[key] for key in ("offset", "jobs") if key in doc}


def load_config(config_dir: str | Path | None = None, **overrides: Any) -> LagConfig:
    """Build the run configuration.

    Args:
        config_dir: Config directory; see ``resolve_config_dir``.
        **overrides: Command-line values. ``None`` means "not given".

    Raises:
        pydantic.ValidationError: If a value is not an integer or is out of
            range.
    """
    directory = resolve_config_dir(config_dir)
    values: dict[str, Any] = {"config_dir": directory}
    values.update(read_config_file(directory / "config.toml"))
    values.update({k: v for k, v in overrides.items() if v is not None})
    return LagConfig(**values)
