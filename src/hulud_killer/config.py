"""Global configuration — XDG paths, env vars, defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

_TRUTHY = {"1", "true", "yes", "on"}


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "hulud-killer"
    return Path.home() / ".config" / "hulud-killer"


@dataclass
class KillerConfig:
    """Application-wide configuration."""

    config_dir: Path = field(default_factory=_default_config_dir)
    max_workers: int | None = None
    include_node_modules: bool = False
    extra_packages_file: Path | None = None
    verbose: bool = False

    @classmethod
    def load(cls) -> KillerConfig:
        """Load config from environment variables with XDG defaults."""
        config = cls()

        env_workers = os.environ.get("HULUD_KILLER_WORKERS")
        if env_workers:
            config.max_workers = int(env_workers)

        env_node_modules = os.environ.get("HULUD_KILLER_INCLUDE_NODE_MODULES")
        if env_node_modules:
            config.include_node_modules = env_node_modules.strip().lower() in _TRUTHY

        # Extra IOC package list: explicit env path, else config dir if present
        env_packages = os.environ.get("HULUD_KILLER_PACKAGES")
        if env_packages:
            config.extra_packages_file = Path(env_packages)
        else:
            packages_file = config.config_dir / "packages.yaml"
            if packages_file.is_file():
                config.extra_packages_file = packages_file

        return config
