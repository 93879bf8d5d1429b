from __future__ import annotations

from typing import Optional


class AssetError(Exception):
    """Base class for asset pipeline errors."""

    def __init__(self, message: str, identity: Optional[str] = None):
        self.identity = identity
        if identity:
            message = f"{identity}: {message}"
        super().__init__(message)


class FatalError(AssetError):
    """Aborts the whole package generation call."""


class SourceError(FatalError):
    """Raised when the source image cannot be fetched, decoded or validated."""


class PartialFailure(AssetError):
    """A single artifact failed; siblings are unaffected."""


class DependencyError(AssetError):
    """An artifact could not be attempted because its input artifact failed."""


class ToolError(PartialFailure):
    """The external vector tool exited non-zero or produced no output."""

    def __init__(
        self,
        message: str,
        identity: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, identity)


class ToolNotFoundError(ToolError):
    """Raised when the vector tool executable is not installed."""

    def __init__(self, executable: str, identity: Optional[str] = None):
        super().__init__(
            f"{executable} not found. Install Inkscape 1.x or set [vector].command in logokit.toml",
            identity,
        )


class ToolTimeoutError(ToolError, TimeoutError):
    """The external vector tool exceeded its time budget and was killed."""

    def __init__(self, timeout_sec: float, identity: Optional[str] = None):
        self.timeout_sec = timeout_sec
        super().__init__(f"timed out after {timeout_sec:g}s", identity)


class StorageError(PartialFailure):
    """Raised by storage uploaders when a buffer cannot be stored."""
