"""Configuration management for Commit Version."""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class VersionConfig(BaseModel):
    """Configuration for one version resolution run."""

    repository: str = Field(
        default=".",
        description="Path to the repository root, or a URL when cloning is enabled",
    )
    clone: bool = Field(
        default=False, description="Clone the repository when it is given as a URL"
    )
    revision: str = Field(
        default="HEAD", description="Revision expression naming the commit to version"
    )
    time_multiplier: int = Field(
        default=1000,
        ge=0,
        description="Build units contributed by one year between the root and target commits",
    )
    allow_snapshot: bool = Field(
        default=True,
        description="Produce a SNAPSHOT version for a dirty tree instead of failing",
    )
    version_file: str = Field(
        default="VERSION",
        description="Version file path, relative to the repository root",
    )
    from_file: bool = Field(
        default=False,
        description="Fail when the version file is present but not a valid version",
    )
    from_tag: bool = Field(
        default=False, description="Require the base version to come from a tag"
    )
    stable_branches: List[str] = Field(
        default=["main", "master"],
        description="Branches that produce versions without a pre-release channel (case-insensitive)",
    )
    allow_detached_head: bool = Field(
        default=False,
        description="Use 'HEAD' as the branch name instead of failing on a detached head",
    )
    version_file_from_commit: bool = Field(
        default=False,
        description="Read the version file from the resolved commit instead of the working tree",
    )

    @field_validator("repository", mode="before")
    @classmethod
    def convert_path(cls, v: Any) -> str:
        """Accept Path objects for the repository location."""
        if isinstance(v, Path):
            return str(v)
        if isinstance(v, str):
            return v
        raise ValueError(f"Expected str or Path, got {type(v)}")

    @field_validator("stable_branches")
    @classmethod
    def normalize_branches(cls, v: List[str]) -> List[str]:
        """Strip names and drop blanks and duplicates, keeping order."""
        seen = set()
        branches = []
        for name in v:
            name = name.strip()
            if name and name.casefold() not in seen:
                seen.add(name.casefold())
                branches.append(name)
        return branches


class ConfigManager:
    """Manages configuration loading, saving, and validation."""

    CONFIG_DIR_NAME = ".commit-version"
    DEFAULT_CONFIG_PATH = Path(CONFIG_DIR_NAME) / "config.json"

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: Optional[VersionConfig] = None

    def load(self) -> VersionConfig:
        """Load configuration from file, or defaults when no file exists."""
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                self._config = VersionConfig(**data)
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")
            logger.debug(f"Loaded configuration from {self.config_path}")
        else:
            self._config = VersionConfig()

        return self._config

    def save(self, config: Optional[VersionConfig] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, "w") as f:
            json.dump(config.model_dump(), f, indent=2)

    def get_config(self) -> VersionConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load()
        if self._config is None:
            raise RuntimeError("Failed to load configuration")
        return self._config

    def create_default_config(self) -> VersionConfig:
        """Create and save a default configuration."""
        config = VersionConfig()
        self._config = config
        self.save()
        return config

    def with_overrides(self, **overrides: Any) -> VersionConfig:
        """Return the current configuration with every non-None override applied."""
        config_dict = self.get_config().model_dump()
        config_dict.update({k: v for k, v in overrides.items() if v is not None})
        return VersionConfig(**config_dict)

    @classmethod
    def find_config_path(cls, start_dir: Optional[Path] = None) -> Optional[Path]:
        """Find .commit-version/config.json by walking up the directory tree.

        Args:
            start_dir: Directory to start searching from (default: current directory)

        Returns:
            Path to config.json if found, None otherwise
        """
        current = (start_dir or Path.cwd()).resolve()

        for path in [current] + list(current.parents):
            config_path = path / cls.CONFIG_DIR_NAME / "config.json"
            if config_path.exists():
                return config_path

        return None

    @classmethod
    def create_with_backtrack(cls, start_dir: Optional[Path] = None) -> "ConfigManager":
        """Create ConfigManager by finding config through directory backtracking.

        Falls back to the default location under ``start_dir`` when no
        configuration file exists in any parent directory.
        """
        config_path = cls.find_config_path(start_dir)
        if config_path is None:
            config_path = (start_dir or Path.cwd()) / cls.CONFIG_DIR_NAME / "config.json"
        return cls(config_path)
