"""Protocols for the collaborators agent-sync consumes.

The library only requires these interfaces. Apps (and tests) provide the
implementations: a real or in-memory filesystem, a git client, an HTTP
fetcher, an event sink, a target registry.
"""

from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from .models import CognitiveType
from .models import InstallScope

EnvReader = Callable[[str], str | None]
"""Reads one environment variable; injected so core code never touches os.environ."""


@dataclass(frozen=True)
class FileStat:
    """Kind of a filesystem entry (from stat or lstat)."""

    is_file: bool
    is_dir: bool
    is_symlink: bool


@dataclass(frozen=True)
class DirEntry:
    """One child returned by FileSystemProtocol.iterdir (not following links)."""

    name: str
    is_file: bool
    is_dir: bool
    is_symlink: bool


@runtime_checkable
class FileSystemProtocol(Protocol):
    """Async filesystem adapter.

    Text is UTF-8; a file that is not valid UTF-8 raises UnicodeDecodeError
    from read_text and is only readable through read_bytes.

    Errors follow the builtin OSError family (FileNotFoundError,
    NotADirectoryError, OSError with errno.ELOOP for cyclic links) so callers
    can match on them regardless of the implementation.
    """

    async def read_text(self, path: Path) -> str: ...

    async def write_text(self, path: Path, content: str) -> None: ...

    async def read_bytes(self, path: Path) -> bytes: ...

    async def write_bytes(self, path: Path, content: bytes) -> None: ...

    async def mkdir(self, path: Path, parents: bool = True) -> None: ...

    async def iterdir(self, path: Path) -> list[DirEntry]: ...

    async def stat(self, path: Path) -> FileStat: ...

    async def lstat(self, path: Path) -> FileStat: ...

    async def symlink(self, target: str | Path, link: Path) -> None:
        """Create `link` pointing at `target` (stored verbatim, may be relative)."""
        ...

    async def readlink(self, path: Path) -> str: ...

    async def remove(self, path: Path, recursive: bool = False, missing_ok: bool = True) -> None:
        """Remove a file, link or (with recursive) a directory tree."""
        ...

    async def rename(self, src: Path, dest: Path) -> None: ...

    async def exists(self, path: Path) -> bool:
        """True if `path` exists, following links (dangling or cyclic links are False)."""
        ...

    async def copy_directory(self, src: Path, dest: Path) -> None: ...


class GitClientProtocol(Protocol):
    """Clones a repository into a temporary directory.

    Example implementations:
    - A subprocess wrapper around `git clone --depth 1`
    - A fake that writes fixture files (tests)
    """

    async def clone(self, url: str, ref: str | None = None) -> Path:
        """Clone `url` (at `ref` when given) and return the checkout directory."""
        ...

    async def cleanup(self, path: Path) -> None: ...


@dataclass(frozen=True)
class FetchResponse:
    content: str
    etag: str | None = None


class FetcherProtocol(Protocol):
    """Fetches a text resource over the network."""

    async def fetch(self, url: str) -> FetchResponse: ...


class EventEmitter(Protocol):
    """Fire-and-forget event sink."""

    def emit(self, event: str, payload: Mapping[str, Any]) -> None: ...


class TargetRegistryProtocol(Protocol):
    """Per-tool install directory lookup.

    The static per-tool tables live outside this package; the installer and
    path resolver only need these two questions answered.
    """

    def get_dir(self, target_id: str, cognitive_type: CognitiveType, scope: InstallScope) -> Path | None:
        """Directory holding units of `cognitive_type` for the target, or None if unconfigured."""
        ...

    def is_universal(self, target_id: str, cognitive_type: CognitiveType) -> bool:
        """True when the target reads straight from the shared canonical store."""
        ...
