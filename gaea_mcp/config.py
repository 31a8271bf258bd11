"""Runtime configuration: Gaea install discovery and project directories.

Values come from the environment, optionally seeded from a ``.env`` file.
The resolved configuration is cached; pass ``force_reload=True`` to pick
up environment changes.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_INSTALL_ENV_VAR = "GAEA_INSTALL_DIR"
GAEA_EXE = "Gaea.exe"
SWARM_EXE = "Gaea.Swarm.exe"
TERRAIN_SUFFIX = ".terrain"

_STATIC_CANDIDATE_DIRS = [
    "C:/Program Files/QuadSpinner/Gaea",
    "C:/Program Files/QuadSpinner/Gaea 2",
    "C:/Program Files/Gaea",
    "C:/Program Files (x86)/Gaea",
    "D:/Program Files/QuadSpinner/Gaea",
    "D:/Program Files/Gaea",
]

_CONFIG: Optional["Config"] = None


@dataclass(frozen=True)
class GaeaPaths:
    gaea_exe: Optional[str] = None
    swarm_exe: Optional[str] = None
    install_dir: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.gaea_exe or self.swarm_exe)


@dataclass(frozen=True)
class Config:
    gaea: GaeaPaths
    project_dir: Path
    output_dir: Path


def candidate_install_dirs(env: Optional[Mapping[str, str]] = None) -> List[str]:
    """Return the usual Windows install locations, per-user ones first."""
    env = os.environ if env is None else env
    dirs: List[str] = []
    local_app_data = env.get("LOCALAPPDATA")
    if local_app_data:
        dirs.append(f"{local_app_data}/Programs/Gaea 2.0")
        dirs.append(f"{local_app_data}/Programs/Gaea")
    dirs.extend(_STATIC_CANDIDATE_DIRS)
    return dirs


def _paths_in(directory: str) -> GaeaPaths:
    gaea = os.path.join(directory, GAEA_EXE)
    swarm = os.path.join(directory, SWARM_EXE)
    return GaeaPaths(
        gaea_exe=gaea if os.path.exists(gaea) else None,
        swarm_exe=swarm if os.path.exists(swarm) else None,
        install_dir=directory,
    )


def find_gaea(env: Optional[Mapping[str, str]] = None) -> GaeaPaths:
    """
    Locate Gaea.exe and Gaea.Swarm.exe.

    Order: ``GAEA_INSTALL_DIR``, then the common install directories.
    Returns empty ``GaeaPaths`` when nothing is found.
    """
    env = os.environ if env is None else env

    install_dir = env.get(_INSTALL_ENV_VAR)
    if install_dir:
        paths = _paths_in(install_dir)
        if paths.found:
            logger.info("Using %s from env: %s", _INSTALL_ENV_VAR, install_dir)
            return paths
        logger.warning("%s=%r set but no executables found there", _INSTALL_ENV_VAR, install_dir)

    for directory in candidate_install_dirs(env):
        paths = _paths_in(directory)
        if paths.found:
            logger.info("Auto-detected Gaea install at: %s", directory)
            return paths

    logger.warning("Gaea not found. Set %s in .env or install Gaea.", _INSTALL_ENV_VAR)
    return GaeaPaths()


def get_config(force_reload: bool = False, dotenv_path: Optional[str] = None) -> Config:
    """Load and cache the runtime configuration."""
    global _CONFIG

    if _CONFIG is not None and not force_reload:
        return _CONFIG

    load_dotenv(dotenv_path)
    _CONFIG = Config(
        gaea=find_gaea(),
        project_dir=Path(os.environ.get("PROJECT_DIR") or "./projects").resolve(),
        output_dir=Path(os.environ.get("OUTPUT_DIR") or "./output").resolve(),
    )
    return _CONFIG


def resolve_terrain_path(filename: str, config: Optional[Config] = None) -> Path:
    """Absolute paths pass through; anything else is taken relative to the project dir."""
    path = Path(filename).expanduser()
    if path.is_absolute():
        return path
    config = config or get_config()
    return config.project_dir / path


def list_terrain_files(config: Optional[Config] = None) -> List[str]:
    """Return the .terrain file names in the project dir, creating it if needed."""
    config = config or get_config()
    config.project_dir.mkdir(parents=True, exist_ok=True)
    return sorted(entry.name for entry in config.project_dir.iterdir() if entry.suffix == TERRAIN_SUFFIX)


__all__ = [
    "GaeaPaths",
    "Config",
    "candidate_install_dirs",
    "find_gaea",
    "get_config",
    "resolve_terrain_path",
    "list_terrain_files",
]
