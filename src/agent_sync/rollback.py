"""Best-effort compensation of recorded install actions.

Not a transaction: each recorded action is undone independently, newest
first, and failures are counted instead of raised.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from .protocols import FileSystemProtocol

logger = logging.getLogger(__name__)

ActionType = Literal[
    "create_directory",
    "write_file",
    "create_symlink",
    "copy_file",
    "copy_directory",
    "remove_existing",
]


@dataclass(frozen=True)
class RollbackAction:
    """One step of an install, recorded so it can be undone.

    `backup_path` is only meaningful for `remove_existing`: the location the
    removed entry was moved to.
    """

    type: ActionType
    path: Path
    backup_path: Path | None = None


@dataclass(frozen=True)
class RollbackResult:
    undone: int
    failed: int


class ActionLog:
    """Ordered record of install actions for one batch."""

    def __init__(self) -> None:
        self.actions: list[RollbackAction] = []

    def record(self, type: ActionType, path: Path, backup_path: Path | None = None) -> None:
        self.actions.append(RollbackAction(type=type, path=Path(path), backup_path=backup_path))

    def __len__(self) -> int:
        return len(self.actions)


async def _undo(action: RollbackAction, fs: FileSystemProtocol) -> None:
    match action.type:
        case "write_file" | "copy_file" | "create_symlink":
            await fs.remove(action.path, missing_ok=True)
        case "create_directory" | "copy_directory":
            await fs.remove(action.path, recursive=True, missing_ok=True)
        case "remove_existing":
            if action.backup_path is not None:
                await fs.rename(action.backup_path, action.path)


async def rollback(actions: list[RollbackAction], fs: FileSystemProtocol) -> RollbackResult:
    """Undo `actions` in LIFO order.

    Returns:
        Counts of actions undone and actions whose undo failed
    """
    undone = 0
    failed = 0

    for action in reversed(actions):
        try:
            await _undo(action, fs)
            undone += 1
        except Exception as e:
            failed += 1
            logger.warning(f"Rollback of {action.type} at {action.path} failed: {e}")

    logger.debug(f"Rollback finished: {undone} undone, {failed} failed")
    return RollbackResult(undone=undone, failed=failed)
