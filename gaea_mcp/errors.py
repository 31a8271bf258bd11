"""Error taxonomy for .terrain document handling.

Each error also derives from the closest builtin so callers that only know
about ``ValueError`` / ``LookupError`` / ``OSError`` keep working.
"""


class TerrainError(Exception):
    """Base class for all errors raised by gaea_mcp."""


class FormatError(TerrainError, ValueError):
    """Raised when loaded text lacks the required top-level sections."""


class NotFoundError(TerrainError, LookupError):
    """Raised when a referenced node id or port name does not exist."""

    def __str__(self):
        # LookupError would otherwise repr() the message like KeyError does
        return str(self.args[0]) if self.args else ""


class DanglingReferenceError(NotFoundError):
    """Raised when a ``$ref`` alias points to an id that does not exist."""


class AlreadyDisconnectedError(TerrainError, RuntimeError):
    """Raised when disconnecting a port that carries no connection record."""


class TerrainIOError(TerrainError, OSError):
    """Raised when reading or writing a .terrain file fails."""


__all__ = [
    "TerrainError",
    "FormatError",
    "NotFoundError",
    "DanglingReferenceError",
    "AlreadyDisconnectedError",
    "TerrainIOError",
]
