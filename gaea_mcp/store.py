"""
Reading and writing .terrain files on disk.

Every edit is read-whole-file, mutate in memory, write-whole-file. Writes
go to a temporary file in the target directory and are moved over the
target with ``os.replace`` only once the full text is on disk, so a crash
mid-write never leaves a truncated project behind.

``edit_terrain`` serialises edits to the same resolved path within one
process. Nothing here coordinates separate processes.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from .errors import FormatError, TerrainIOError
from .serializer import write
from .terrain import TerrainFile, loads

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# One lock per file ever edited in this process; entries are never evicted
_PATH_LOCKS: Dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: PathLike) -> threading.Lock:
    key = os.path.normcase(str(Path(path).expanduser().resolve()))
    with _PATH_LOCKS_GUARD:
        lock = _PATH_LOCKS.get(key)
        if lock is None:
            lock = _PATH_LOCKS[key] = threading.Lock()
        return lock


def read_terrain(path: PathLike) -> TerrainFile:
    """Load a .terrain file from disk.

    Raises:
        TerrainIOError: if the file cannot be read.
        FormatError: if the content is not a valid .terrain document.
    """
    try:
        with open(path, "r", encoding="utf-8-sig") as handle:
            text = handle.read()
    except UnicodeDecodeError as exc:
        raise FormatError(f"Invalid .terrain file {path}: not UTF-8 text ({exc})") from exc
    except OSError as exc:
        raise TerrainIOError(f"Could not read terrain file {path}: {exc}") from exc
    return loads(text, path=str(path))


def write_terrain(tf: TerrainFile, path: Optional[PathLike] = None) -> str:
    """Stamp, serialize and atomically write ``tf``; returns the path written.

    Raises:
        TerrainIOError: if the file cannot be written. The previous file
            content, if any, is left in place.
    """
    if path is None and not tf.path:
        raise TerrainIOError("No path given for terrain file")
    target = Path(path if path is not None else tf.path)

    text = write(tf)
    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            tmp_name = handle.name
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        # NamedTemporaryFile is created 0600; keep the mode of the file being replaced
        if target.exists():
            os.chmod(tmp_name, stat.S_IMODE(os.stat(target).st_mode))
        os.replace(tmp_name, target)
    except OSError as exc:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise TerrainIOError(f"Could not write terrain file {target}: {exc}") from exc

    tf.path = str(target)
    logger.info("Saved %s (%d bytes)", target, len(text.encode("utf-8")))
    return str(target)


@contextmanager
def edit_terrain(path: PathLike) -> Iterator[TerrainFile]:
    """
    Load ``path``, yield the document for editing, then save it.

    The file is written only if the ``with`` block finishes without an
    exception; a failing edit leaves the file on disk untouched.

    Usage:
        with edit_terrain("canyon.terrain") as tf:
            node_id = graph.add_node(tf, dotnet_type, ports)
    """
    with _lock_for(path):
        tf = read_terrain(path)
        yield tf
        write_terrain(tf, path)


__all__ = ["read_terrain", "write_terrain", "edit_terrain"]
