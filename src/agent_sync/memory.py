"""In-memory filesystem for I/O-free tests.

Implements FileSystemProtocol with the same error behavior as the local
adapter: missing paths raise FileNotFoundError, cyclic links raise OSError
with errno.ELOOP, parents are never created implicitly except by mkdir.
POSIX-style paths only.
"""

import errno
import os
import posixpath
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from pathlib import PurePosixPath

from .protocols import DirEntry
from .protocols import FileStat

MAX_LINK_HOPS = 40


@dataclass
class _Node:
    kind: str  # "file" | "dir" | "symlink"
    content: bytes = b""
    target: str = ""
    children: dict[str, "_Node"] = field(default_factory=dict)


def _parts(path: str | Path) -> list[str]:
    return list(PurePosixPath(posixpath.abspath(os.fspath(path))).parts[1:])


class MemoryFileSystem:
    """Dictionary-tree filesystem honoring relative and absolute symlinks."""

    def __init__(self) -> None:
        self._root = _Node("dir")

    @classmethod
    def from_files(cls, files: dict[str, str | bytes]) -> "MemoryFileSystem":
        """Build a filesystem seeded with `{path: content}`, creating parent dirs."""
        fs = cls()
        for file_path, content in files.items():
            parent = fs._mkdirs(_parts(file_path)[:-1])
            if isinstance(content, str):
                content = content.encode("utf-8")
            parent.children[_parts(file_path)[-1]] = _Node("file", content=content)
        return fs

    # -- resolution -------------------------------------------------------

    def _resolve(self, path: str | Path, follow_last: bool = True) -> _Node:
        parts = _parts(path)
        node = self._root
        current = PurePosixPath("/")
        hops = 0
        i = 0
        while i < len(parts):
            if node.kind != "dir":
                raise NotADirectoryError(errno.ENOTDIR, "Not a directory", str(path))
            child = node.children.get(parts[i])
            if child is None:
                raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
            is_last = i == len(parts) - 1
            if child.kind == "symlink" and (follow_last or not is_last):
                hops += 1
                if hops > MAX_LINK_HOPS:
                    raise OSError(errno.ELOOP, "Too many levels of symbolic links", str(path))
                base = posixpath.join(str(current), child.target)
                parts = _parts(posixpath.normpath(base)) + parts[i + 1 :]
                node = self._root
                current = PurePosixPath("/")
                i = 0
                continue
            node = child
            current = current / parts[i]
            i += 1
        return node

    def _parent(self, path: str | Path) -> tuple[_Node, str]:
        parts = _parts(path)
        if not parts:
            raise PermissionError(errno.EPERM, "Operation not permitted on root", str(path))
        parent = self._resolve(posixpath.join("/", *parts[:-1]))
        if parent.kind != "dir":
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", str(path))
        return parent, parts[-1]

    def _mkdirs(self, parts: list[str]) -> _Node:
        node = self._root
        for i, part in enumerate(parts):
            child = node.children.get(part)
            if child is None:
                child = node.children[part] = _Node("dir")
            elif child.kind == "symlink":
                child = self._resolve(posixpath.join("/", *parts[: i + 1]))
            if child.kind != "dir":
                raise FileExistsError(errno.EEXIST, "File exists", posixpath.join("/", *parts[: i + 1]))
            node = child
        return node

    # -- FileSystemProtocol -----------------------------------------------

    async def read_text(self, path: Path) -> str:
        return (await self.read_bytes(path)).decode("utf-8")

    async def write_text(self, path: Path, content: str) -> None:
        await self.write_bytes(path, content.encode("utf-8"))

    async def read_bytes(self, path: Path) -> bytes:
        node = self._resolve(path)
        if node.kind == "dir":
            raise IsADirectoryError(errno.EISDIR, "Is a directory", str(path))
        return node.content

    async def write_bytes(self, path: Path, content: bytes) -> None:
        parent, name = self._parent(path)
        existing = parent.children.get(name)
        if existing is not None and existing.kind == "symlink":
            target = self._resolve(path)
            if target.kind == "dir":
                raise IsADirectoryError(errno.EISDIR, "Is a directory", str(path))
            target.content = content
            return
        if existing is not None and existing.kind == "dir":
            raise IsADirectoryError(errno.EISDIR, "Is a directory", str(path))
        parent.children[name] = _Node("file", content=content)

    async def mkdir(self, path: Path, parents: bool = True) -> None:
        if not parents:
            parent, name = self._parent(path)
            existing = parent.children.get(name)
            if existing is None:
                parent.children[name] = _Node("dir")
            elif existing.kind != "dir":
                raise FileExistsError(errno.EEXIST, "File exists", str(path))
            return
        self._mkdirs(_parts(path))

    async def iterdir(self, path: Path) -> list[DirEntry]:
        node = self._resolve(path)
        if node.kind != "dir":
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", str(path))
        return [
            DirEntry(
                name=name,
                is_file=child.kind == "file",
                is_dir=child.kind == "dir",
                is_symlink=child.kind == "symlink",
            )
            for name, child in node.children.items()
        ]

    async def stat(self, path: Path) -> FileStat:
        return _to_stat(self._resolve(path))

    async def lstat(self, path: Path) -> FileStat:
        return _to_stat(self._resolve(path, follow_last=False))

    async def symlink(self, target: str | Path, link: Path) -> None:
        parent, name = self._parent(link)
        if name in parent.children:
            raise FileExistsError(errno.EEXIST, "File exists", str(link))
        parent.children[name] = _Node("symlink", target=os.fspath(target))

    async def readlink(self, path: Path) -> str:
        node = self._resolve(path, follow_last=False)
        if node.kind != "symlink":
            raise OSError(errno.EINVAL, "Invalid argument", str(path))
        return node.target

    async def remove(self, path: Path, recursive: bool = False, missing_ok: bool = True) -> None:
        try:
            parent, name = self._parent(path)
        except FileNotFoundError:
            if missing_ok:
                return
            raise
        node = parent.children.get(name)
        if node is None:
            if missing_ok:
                return
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
        if node.kind == "dir" and node.children and not recursive:
            raise OSError(errno.ENOTEMPTY, "Directory not empty", str(path))
        del parent.children[name]

    async def rename(self, src: Path, dest: Path) -> None:
        src_parent, src_name = self._parent(src)
        node = src_parent.children.get(src_name)
        if node is None:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(src))
        dest_parent, dest_name = self._parent(dest)
        existing = dest_parent.children.get(dest_name)
        if existing is not None and existing.kind == "dir" and existing.children:
            raise OSError(errno.ENOTEMPTY, "Directory not empty", str(dest))
        del src_parent.children[src_name]
        dest_parent.children[dest_name] = node

    async def exists(self, path: Path) -> bool:
        try:
            self._resolve(path)
        except OSError:
            return False
        return True

    async def copy_directory(self, src: Path, dest: Path) -> None:
        source = self._resolve(src)
        if source.kind != "dir":
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", str(src))
        await self.mkdir(dest)
        for name, child in list(source.children.items()):
            src_child = Path(src) / name
            dest_child = Path(dest) / name
            resolved = self._resolve(src_child)
            if resolved.kind == "dir":
                await self.copy_directory(src_child, dest_child)
            else:
                await self.write_bytes(dest_child, resolved.content)


def _to_stat(node: _Node) -> FileStat:
    return FileStat(
        is_file=node.kind == "file",
        is_dir=node.kind == "dir",
        is_symlink=node.kind == "symlink",
    )
