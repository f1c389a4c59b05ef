"""Agent-sync exceptions.

Every error carries a machine-readable code and an optional context dict.
Low-level primitives raise these; the installer and reconciler convert them
into result values at their boundary.
"""

from pathlib import Path


class CognitError(Exception):
    """Base exception for agent-sync operations."""

    code = "COGNIT_ERROR"

    def __init__(self, message: str, context: dict | None = None):
        """Initialize with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (file paths, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict:
        """Structured representation for logs and event payloads."""
        return {
            "name": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "cause": repr(self.__cause__) if self.__cause__ else None,
        }


# Configuration


class ConfigError(CognitError):
    """Invalid or missing configuration."""

    code = "CONFIG_ERROR"


class InvalidConfigError(ConfigError):
    """A configuration field failed validation."""

    code = "INVALID_CONFIG_ERROR"

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid config: {field} -- {reason}", context={"field": field, "reason": reason})
        self.field = field
        self.reason = reason


# Installation


class InstallError(CognitError):
    """Installation failed."""

    code = "INSTALL_ERROR"


class PathTraversalError(InstallError):
    """A name or path would escape its base directory."""

    code = "PATH_TRAVERSAL_ERROR"

    def __init__(self, attempted_path: str | Path):
        super().__init__(f"Path traversal detected: {attempted_path}", context={"path": str(attempted_path)})
        self.attempted_path = str(attempted_path)


class SymlinkError(InstallError):
    code = "SYMLINK_ERROR"

    def __init__(self, source: str | Path, target: str | Path):
        super().__init__(
            f"Failed to create symlink: {source} -> {target}",
            context={"source": str(source), "target": str(target)},
        )


class FileWriteError(InstallError):
    """Atomic write failed; the destination was left untouched."""

    code = "FILE_WRITE_ERROR"

    def __init__(self, file_path: str | Path):
        super().__init__(f"Failed to write file: {file_path}", context={"path": str(file_path)})
        self.file_path = Path(file_path)


class CyclicSymlinkError(InstallError):
    code = "ELOOP_ERROR"

    def __init__(self, symlink_path: str | Path):
        super().__init__(f"Circular symlink detected: {symlink_path}", context={"path": str(symlink_path)})
        self.symlink_path = Path(symlink_path)


# Lock file


class LockError(CognitError):
    code = "LOCK_ERROR"


class LockReadError(LockError):
    code = "LOCK_READ_ERROR"

    def __init__(self, lock_path: str | Path):
        super().__init__(f"Failed to read lock file: {lock_path}", context={"path": str(lock_path)})


class LockWriteError(LockError):
    code = "LOCK_WRITE_ERROR"

    def __init__(self, lock_path: str | Path):
        super().__init__(f"Failed to write lock file: {lock_path}", context={"path": str(lock_path)})


class LockMigrationError(LockError):
    """Lock data could not be migrated at all."""

    code = "LOCK_MIGRATION_ERROR"

    def __init__(self, from_version: int, to_version: int):
        super().__init__(
            f"Failed to migrate lock file from v{from_version} to v{to_version}",
            context={"from_version": from_version, "to_version": to_version},
        )


# Source cache


class CacheError(CognitError):
    code = "CACHE_ERROR"


class FetchError(CacheError):
    """Remote fetch returned an unusable response."""

    code = "FETCH_ERROR"

    def __init__(self, url: str, status: int | None = None):
        detail = f" ({status})" if status is not None else ""
        super().__init__(f"Fetch failed: {url}{detail}", context={"url": url, "status": status})
        self.url = url
        self.status = status


# Operations


class OperationError(CognitError):
    """A check/sync run failed unexpectedly."""

    code = "OPERATION_ERROR"
