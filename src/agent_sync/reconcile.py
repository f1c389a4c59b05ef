"""Drift detection and repair bookkeeping.

Both passes walk the lock file and re-derive each entry's canonical
directory (`<root>/.agents/cognit/<subdir>/<category or general>/<name>`,
category and name sanitized):

- directory absent or escaping the store: `missing_canonical` (check,
  error) / `missing_files` (sync)
- directory present, hash differs: `hash_mismatch` (check, warning) /
  `lock_mismatch` (sync)

Re-fetching and re-installing belong to the calling layer, which can pass a
`repairer` coroutine to `sync`.
"""

import logging
import time
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Literal

from .events import NullEventBus
from .events import OperationPayload
from .exceptions import OperationError
from .exceptions import PathTraversalError
from .integrity import verify_directory_hash
from .lock import LockManager
from .models import DEFAULT_CATEGORY
from .paths import canonical_path
from .protocols import EventEmitter
from .protocols import FileSystemProtocol
from .schema import LockEntry

logger = logging.getLogger(__name__)

CheckIssueType = Literal["missing_canonical", "hash_mismatch"]
SyncIssueType = Literal["missing_files", "lock_mismatch"]
Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class CheckIssue:
    name: str
    type: CheckIssueType
    description: str
    severity: Severity


@dataclass(frozen=True)
class CheckResult:
    success: bool
    healthy: list[str] = field(default_factory=list)
    issues: list[CheckIssue] = field(default_factory=list)
    message: str = ""


@dataclass(frozen=True)
class SyncIssue:
    name: str
    type: SyncIssueType
    description: str
    fixed: bool


@dataclass(frozen=True)
class SyncResult:
    success: bool
    issues: list[SyncIssue] = field(default_factory=list)
    fixed: int = 0
    remaining: int = 0
    message: str = ""


Repairer = Callable[[str, LockEntry, SyncIssueType], Awaitable[bool]]


class Reconciler:
    """
    Compares the lock file against the canonical store.

    Example:
        >>> reconciler = Reconciler(lock_manager, fs, Path("/work/app"))
        >>> result = await reconciler.check()
        >>> result.message
        'All 3 cognitive(s) are healthy'
    """

    def __init__(
        self,
        lock_manager: LockManager,
        fs: FileSystemProtocol,
        project_root: Path,
        events: EventEmitter | None = None,
        repairer: Repairer | None = None,
    ):
        """
        Args:
            lock_manager: Ledger to walk
            fs: Filesystem adapter used for existence and hash checks
            project_root: Root whose `.agents/cognit` store is inspected
            events: Event sink for operation:* events
            repairer: Called by a confirmed sync for each issue as
                `repairer(name, entry, issue_type)`; returns True when fixed
        """
        self.lock_manager = lock_manager
        self.fs = fs
        self.project_root = Path(project_root)
        self.events = events or NullEventBus()
        self.repairer = repairer

    def canonical_dir(self, name: str, entry: LockEntry) -> Path:
        """Project-scope canonical directory of an entry, category and name sanitized.

        Raises:
            PathTraversalError: If the directory would escape the store
        """
        return canonical_path(
            entry.cognitive_type,
            entry.category or DEFAULT_CATEGORY,
            name,
            "project",
            project_root=self.project_root,
        )

    async def _inspect(self, name: str, entry: LockEntry) -> tuple[str | None, str]:
        """Drift kind of an entry (None, "missing" or "mismatch") and its description."""
        try:
            path = self.canonical_dir(name, entry)
        except PathTraversalError as e:
            return "missing", f"Canonical path escapes the store: {e.attempted_path}"
        if not await self.fs.exists(path):
            return "missing", f"Canonical path does not exist: {path}"
        if not await verify_directory_hash(path, entry.content_hash, self.fs):
            return "mismatch", f"Content hash mismatch for '{name}' at {path}"
        return None, ""

    async def check(self) -> CheckResult:
        """
        Read-only health report of every lock entry.

        Raises:
            OperationError: If the ledger cannot be walked
        """
        started = time.monotonic()
        self.events.emit("operation:start", OperationPayload(operation="check", options={}))

        try:
            healthy: list[str] = []
            issues: list[CheckIssue] = []

            for name, entry in (await self.lock_manager.get_all_entries()).items():
                drift, description = await self._inspect(name, entry)
                if drift == "missing":
                    issues.append(CheckIssue(name, "missing_canonical", description, "error"))
                elif drift == "mismatch":
                    issues.append(CheckIssue(name, "hash_mismatch", description, "warning"))
                else:
                    healthy.append(name)

            result = CheckResult(
                success=not issues,
                healthy=healthy,
                issues=issues,
                message=_check_message(healthy, issues),
            )
        except Exception as e:
            self._fail("check", e)
            raise OperationError("Check operation failed", {"operation": "check"}) from e

        self._complete("check", result, started)
        logger.debug(f"Check finished: {result.message}")
        return result

    async def sync(self, dry_run: bool = False, confirmed: bool = False) -> SyncResult:
        """
        Detect drift and, when confirmed, repair it.

        Args:
            dry_run: Report only; every issue comes back with fixed=False
            confirmed: Attempt repairs (ignored when dry_run is set)

        Returns:
            SyncResult with fixed and remaining counts

        Raises:
            OperationError: If the ledger cannot be walked
        """
        started = time.monotonic()
        options = {"dry_run": dry_run, "confirmed": confirmed}
        self.events.emit("operation:start", OperationPayload(operation="sync", options=options))
        should_fix = confirmed and not dry_run

        try:
            issues: list[SyncIssue] = []

            for name, entry in (await self.lock_manager.get_all_entries()).items():
                drift, description = await self._inspect(name, entry)
                if drift is None:
                    continue

                issue_type: SyncIssueType = "missing_files" if drift == "missing" else "lock_mismatch"

                fixed = await self._repair(name, entry, issue_type) if should_fix else False
                issues.append(SyncIssue(name, issue_type, description, fixed))

            fixed_count = sum(1 for issue in issues if issue.fixed)
            remaining = len(issues) - fixed_count
            result = SyncResult(
                success=remaining == 0,
                issues=issues,
                fixed=fixed_count,
                remaining=remaining,
                message=_sync_message(issues, fixed_count, remaining, dry_run),
            )
        except Exception as e:
            self._fail("sync", e)
            raise OperationError("Sync operation failed", {"operation": "sync"}) from e

        self._complete("sync", result, started)
        logger.info(f"Sync finished: {result.message}")
        return result

    async def _repair(self, name: str, entry: LockEntry, issue_type: SyncIssueType) -> bool:
        if self.repairer is None:
            return True
        try:
            return bool(await self.repairer(name, entry, issue_type))
        except Exception as e:
            logger.warning(f"Repair of {name} ({issue_type}) failed: {e}")
            return False

    def _complete(self, operation: str, result: CheckResult | SyncResult, started: float) -> None:
        self.events.emit(
            "operation:complete",
            OperationPayload(operation=operation, result=result, duration_ms=(time.monotonic() - started) * 1000),
        )

    def _fail(self, operation: str, error: Exception) -> None:
        logger.error(f"{operation} operation failed: {error}")
        self.events.emit(
            "operation:error", OperationPayload(operation=operation, error=str(error) or type(error).__name__)
        )


def _check_message(healthy: list[str], issues: list[CheckIssue]) -> str:
    if not issues:
        return f"All {len(healthy)} cognitive(s) are healthy"

    errors = sum(1 for issue in issues if issue.severity == "error")
    warnings = len(issues) - errors

    parts = []
    if healthy:
        parts.append(f"{len(healthy)} healthy")
    if errors:
        parts.append(f"{errors} error(s)")
    if warnings:
        parts.append(f"{warnings} warning(s)")
    return ", ".join(parts)


def _sync_message(issues: list[SyncIssue], fixed: int, remaining: int, dry_run: bool) -> str:
    if not issues:
        return "All cognitives are in sync"
    if dry_run:
        return f"Found {len(issues)} issue(s) (dry run, no changes applied)"

    parts = []
    if fixed:
        parts.append(f"{fixed} issue(s) fixed")
    if remaining:
        parts.append(f"{remaining} issue(s) remaining")
    return ", ".join(parts)
