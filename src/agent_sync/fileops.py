"""Atomic write, exclusion-aware copy and conflict-safe symlink creation."""

import asyncio
import errno
import itertools
import logging
import os
import time
from pathlib import Path

from .exceptions import CyclicSymlinkError
from .exceptions import FileWriteError
from .protocols import FileSystemProtocol

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".tmp."
EXCLUDED_FILES = frozenset({"README.md", "metadata.json"})

_temp_counter = itertools.count()


def temp_path_for(target: Path) -> Path:
    """Unique sibling temp path for `target` (per process, per call)."""
    return target.parent / f"{TEMP_PREFIX}{os.getpid()}.{time.time_ns()}.{next(_temp_counter)}"


async def atomic_write(path: Path, content: str, fs: FileSystemProtocol) -> None:
    """Write `content` to `path` via a sibling temp file and a rename.

    The destination is either fully replaced or left untouched.

    Raises:
        FileWriteError: If creating the parent, writing or renaming fails
            (cause chained)
    """
    path = Path(path)
    tmp_path = temp_path_for(path)

    try:
        await fs.mkdir(path.parent)
        await fs.write_text(tmp_path, content)
        await fs.rename(tmp_path, path)
    except Exception as e:
        try:
            await fs.remove(tmp_path, missing_ok=True)
        except Exception as cleanup_error:
            logger.debug(f"Could not remove temp file {tmp_path}: {cleanup_error}")
        raise FileWriteError(path) from e


def is_excluded(name: str, is_dir: bool) -> bool:
    """Whether an entry is skipped by deep_copy.

    Exclusion depends on both name and kind: a `.git` file is copied, a
    `README.md` directory is copied.
    """
    if name.startswith("_"):
        return True
    if is_dir and name == ".git":
        return True
    return not is_dir and name in EXCLUDED_FILES


async def deep_copy(src: Path, dest: Path, fs: FileSystemProtocol) -> None:
    """Recursively copy `src` into `dest`, skipping excluded entries.

    Entries of one directory are copied concurrently. Files are copied as
    bytes. Symlinks inside the source are followed and copied as regular
    content; dangling links are skipped.

    Raises:
        CyclicSymlinkError: If a link inside the source resolves to itself
    """
    src = Path(src)
    dest = Path(dest)
    await fs.mkdir(dest)

    async def copy_entry(name: str, is_dir: bool) -> None:
        if is_excluded(name, is_dir):
            return
        if is_dir:
            await deep_copy(src / name, dest / name, fs)
        else:
            await fs.write_bytes(dest / name, await fs.read_bytes(src / name))

    copies: list[tuple[str, bool]] = []
    for entry in await fs.iterdir(src):
        is_dir = entry.is_dir
        if entry.is_symlink:
            try:
                is_dir = (await fs.stat(src / entry.name)).is_dir
            except OSError as e:
                if _is_eloop(e):
                    raise CyclicSymlinkError(src / entry.name) from e
                logger.warning(f"Skipping unresolvable link {src / entry.name}: {e}")
                continue
        copies.append((entry.name, is_dir))

    outcomes = await asyncio.gather(*(copy_entry(name, is_dir) for name, is_dir in copies), return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            raise outcome


def _is_eloop(error: BaseException) -> bool:
    return isinstance(error, OSError) and error.errno == errno.ELOOP


async def _force_remove(path: Path, fs: FileSystemProtocol) -> None:
    try:
        await fs.remove(path, missing_ok=True)
    except OSError as e:
        logger.debug(f"Could not remove {path}: {e}")


async def create_symlink(target: Path, link: Path, fs: FileSystemProtocol) -> bool:
    """Point `link` at `target` with a relative symlink.

    - Same path: nothing to do
    - `link` already a symlink resolving to `target`: nothing to do
    - `link` a cyclic symlink: force-removed
    - any other entry at `link`: removed (recursively)

    Calling twice with the same arguments yields the same state and True.

    Returns:
        True on success, False if the link could not be created (callers
        fall back to copying)
    """
    resolved_target = Path(os.path.abspath(target))
    resolved_link = Path(os.path.abspath(link))

    if resolved_target == resolved_link:
        return True

    try:
        info = await fs.lstat(resolved_link)
    except FileNotFoundError:
        info = None
    except OSError as e:
        info = None
        if _is_eloop(e):
            logger.debug(f"Removing cyclic symlink at {resolved_link}")
            await _force_remove(resolved_link, fs)
        else:
            logger.debug(f"Could not inspect {resolved_link}: {e}")

    try:
        if info is not None:
            if info.is_symlink:
                current = await fs.readlink(resolved_link)
                if Path(os.path.normpath(resolved_link.parent / current)) == resolved_target:
                    return True
            await fs.remove(resolved_link, recursive=True)
    except OSError as e:
        if _is_eloop(e):
            await _force_remove(resolved_link, fs)
        else:
            logger.debug(f"Could not clear existing entry at {resolved_link}: {e}")

    try:
        await fs.mkdir(resolved_link.parent)
        relative = os.path.relpath(resolved_target, resolved_link.parent)
        await fs.symlink(relative, resolved_link)
    except Exception as e:
        logger.debug(f"Symlink {resolved_link} -> {resolved_target} failed: {e}")
        return False
    return True
