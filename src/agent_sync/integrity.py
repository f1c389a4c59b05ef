"""Content hashing for drift detection.

Units are hashed at directory granularity: the value recorded in the lock
file and the value verified later are both `directory_hash` of the
canonical directory.
"""

import hashlib
import logging
from pathlib import Path

from .protocols import FileSystemProtocol

logger = logging.getLogger(__name__)


def content_hash(content: str | bytes) -> str:
    """SHA-256 hex digest of exact content (str is UTF-8 encoded)."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


async def verify_content_hash(path: Path, expected: str, fs: FileSystemProtocol) -> bool:
    """Whether the file at `path` hashes to `expected`.

    Content is compared as raw bytes, so binary files verify like text. An
    unreadable file is reported as not verified (False), never raised.
    """
    try:
        content = await fs.read_bytes(path)
    except (OSError, ValueError) as e:
        logger.debug(f"Cannot verify {path}: {e}")
        return False
    return content_hash(content) == expected


async def directory_hash(directory: Path, fs: FileSystemProtocol) -> str:
    """Combined SHA-256 of the immediate files in `directory`.

    Files are sorted by name before folding name and content into the
    digest, so enumeration order never affects the result.

    Raises:
        OSError: If the directory or one of its files cannot be read
    """
    entries = await fs.iterdir(directory)
    names = sorted(entry.name for entry in entries if entry.is_file)

    digest = hashlib.sha256()
    for name in names:
        content = await fs.read_bytes(Path(directory) / name)
        digest.update(name.encode("utf-8"))
        digest.update(content)
    return digest.hexdigest()


async def verify_directory_hash(directory: Path, expected: str, fs: FileSystemProtocol) -> bool:
    """Whether `directory` hashes to `expected`; unreadable means False."""
    try:
        actual = await directory_hash(directory, fs)
    except (OSError, ValueError) as e:
        logger.debug(f"Cannot verify {directory}: {e}")
        return False
    return actual == expected
