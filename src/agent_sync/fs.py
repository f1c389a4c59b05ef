"""Filesystem adapter backed by the local disk."""

import os
import shutil
import stat as stat_mod
from pathlib import Path

from .protocols import DirEntry
from .protocols import FileStat


class LocalFileSystem:
    """FileSystemProtocol implementation on pathlib/os/shutil.

    Calls are blocking but short; they are exposed as coroutines so the
    in-memory double and this adapter are interchangeable.
    """

    async def read_text(self, path: Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    async def write_text(self, path: Path, content: str) -> None:
        Path(path).write_text(content, encoding="utf-8")

    async def read_bytes(self, path: Path) -> bytes:
        return Path(path).read_bytes()

    async def write_bytes(self, path: Path, content: bytes) -> None:
        Path(path).write_bytes(content)

    async def mkdir(self, path: Path, parents: bool = True) -> None:
        Path(path).mkdir(parents=parents, exist_ok=True)

    async def iterdir(self, path: Path) -> list[DirEntry]:
        entries = []
        with os.scandir(path) as it:
            for entry in it:
                is_link = entry.is_symlink()
                entries.append(
                    DirEntry(
                        name=entry.name,
                        is_file=not is_link and entry.is_file(follow_symlinks=False),
                        is_dir=not is_link and entry.is_dir(follow_symlinks=False),
                        is_symlink=is_link,
                    )
                )
        return entries

    async def stat(self, path: Path) -> FileStat:
        return _to_stat(os.stat(path).st_mode)

    async def lstat(self, path: Path) -> FileStat:
        return _to_stat(os.lstat(path).st_mode)

    async def symlink(self, target: str | Path, link: Path) -> None:
        os.symlink(target, link, target_is_directory=Path(link).parent.joinpath(target).is_dir())

    async def readlink(self, path: Path) -> str:
        return os.readlink(path)

    async def remove(self, path: Path, recursive: bool = False, missing_ok: bool = True) -> None:
        path = Path(path)
        if not path.is_symlink() and not path.exists():
            if missing_ok:
                return
            raise FileNotFoundError(str(path))
        if path.is_dir() and not path.is_symlink():
            if recursive:
                shutil.rmtree(path)
            else:
                path.rmdir()
        else:
            path.unlink()

    async def rename(self, src: Path, dest: Path) -> None:
        os.replace(src, dest)

    async def exists(self, path: Path) -> bool:
        return Path(path).exists()

    async def copy_directory(self, src: Path, dest: Path) -> None:
        shutil.copytree(src, dest, dirs_exist_ok=True)


def _to_stat(mode: int) -> FileStat:
    return FileStat(
        is_file=stat_mod.S_ISREG(mode),
        is_dir=stat_mod.S_ISDIR(mode),
        is_symlink=stat_mod.S_ISLNK(mode),
    )
