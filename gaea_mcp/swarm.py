"""
Command-line builds through Gaea.Swarm.exe.

Gaea itself does the rendering; this module only assembles the argument
list and runs the executable.
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Dict, List, Mapping, Optional

from .errors import TerrainError

logger = logging.getLogger(__name__)

BUILD_TIMEOUT = 300
VERSION_TIMEOUT = 15


class BuildError(TerrainError, RuntimeError):
    """Raised when Gaea.Swarm.exe (or Gaea.exe) fails or times out."""


def build_swarm_args(
    terrain_path: str,
    profile: Optional[str] = None,
    region: Optional[str] = None,
    seed: Optional[int] = None,
    variables: Optional[Mapping[str, str]] = None,
    vars_file: Optional[str] = None,
    ignore_cache: bool = False,
    verbose: bool = False,
) -> List[str]:
    """
    Build the Gaea.Swarm.exe argument list.

    ``-v key=value`` pairs must come last on the command line, so they are
    appended after every other flag.
    """
    args = ["--Filename", str(terrain_path)]
    if profile:
        args += ["-p", profile]
    if region:
        args += ["-r", region]
    if seed is not None:
        args += ["--seed", str(seed)]
    if ignore_cache:
        args.append("--ignorecache")
    if verbose:
        args.append("--verbose")
    if vars_file:
        args += ["--vars", os.path.abspath(vars_file)]
    for key, value in (variables or {}).items():
        args += ["-v", f"{key}={value}"]
    return args


def run_executable(exe: str, args: List[str], timeout: float = BUILD_TIMEOUT) -> str:
    """Run ``exe`` and return stdout (plus stderr, if any).

    Raises:
        BuildError: on a non-zero exit, a timeout, or a missing executable.
    """
    logger.info("Running %s %s", exe, " ".join(args))
    try:
        proc = subprocess.run(
            [exe, *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise BuildError(f"{os.path.basename(exe)} timed out after {timeout}s") from exc
    except OSError as exc:
        raise BuildError(f"Could not start {exe}: {exc}") from exc

    if proc.returncode != 0:
        raise BuildError(
            f"{os.path.basename(exe)} exited with code {proc.returncode}\n{proc.stderr or ''}".rstrip()
        )
    output = proc.stdout or ""
    if proc.stderr:
        output += f"\n{proc.stderr}"
    return output


def build_terrain(swarm_exe: str, terrain_path: str, timeout: float = BUILD_TIMEOUT, **options) -> Dict[str, str]:
    """Build ``terrain_path`` with Gaea.Swarm.exe and return the build log."""
    args = build_swarm_args(terrain_path, **options)
    output = run_executable(swarm_exe, args, timeout=timeout)
    return {
        "status": "success",
        "terrainFile": str(terrain_path),
        "log": output.strip(),
    }


def get_gaea_version(gaea_exe: str) -> str:
    """Ask Gaea.exe for its version string."""
    return run_executable(gaea_exe, ["-Version"], timeout=VERSION_TIMEOUT).strip()


__all__ = [
    "BUILD_TIMEOUT",
    "BuildError",
    "build_swarm_args",
    "run_executable",
    "build_terrain",
    "get_gaea_version",
]
