"""Cognitive installation: canonical store plus per-target fan-out.

Process for one unit and one target:
1. Resolve the canonical store directory (category "general")
2. Materialize the unit there (local: deep copy; remote: one atomic file
   write; multi-file: one atomic write per file)
3. Universal targets read the canonical store directly: done
4. Otherwise link (symlink mode, falling back to a copy) or copy
   (copy mode) into the target's own directory

Failures never propagate: they come back as InstallResult(success=False)
after the steps taken so far are rolled back, so callers can install many
units across many targets and aggregate the outcome.
"""

import asyncio
import logging
from pathlib import Path
from typing import assert_never

from .events import InstallCompletePayload
from .events import InstallLinkPayload
from .events import InstallStartPayload
from .events import NullEventBus
from .exceptions import SymlinkError
from .fileops import atomic_write
from .fileops import create_symlink
from .fileops import deep_copy
from .fileops import temp_path_for
from .fs import LocalFileSystem
from .models import DEFAULT_CATEGORY
from .models import CognitiveType
from .models import InstallRequest
from .models import InstallResult
from .models import InstallScope
from .models import InstallTarget
from .models import LocalInstallRequest
from .models import MultiFileInstallRequest
from .models import RemoteInstallRequest
from .models import type_file_name
from .paths import canonical_path
from .paths import target_install_path
from .protocols import EnvReader
from .protocols import EventEmitter
from .protocols import FileSystemProtocol
from .protocols import TargetRegistryProtocol
from .rollback import ActionLog
from .rollback import rollback
from .security import sanitize_name

logger = logging.getLogger(__name__)


def request_info(request: InstallRequest) -> tuple[str, CognitiveType, str]:
    """(display name, type, install name) of a request."""
    match request:
        case LocalInstallRequest(cognitive=cognitive):
            return cognitive.name, cognitive.type, sanitize_name(cognitive.name)
        case RemoteInstallRequest(cognitive=cognitive):
            return cognitive.name, cognitive.type, cognitive.install_name
        case MultiFileInstallRequest(cognitive=cognitive):
            return cognitive.name, cognitive.type, cognitive.install_name
        case _:
            assert_never(request)


class Installer:
    """Installs cognitives into the canonical store and fans them out to targets."""

    def __init__(
        self,
        registry: TargetRegistryProtocol,
        fs: FileSystemProtocol | None = None,
        events: EventEmitter | None = None,
        env: EnvReader | None = None,
        home: Path | None = None,
    ):
        """
        Args:
            registry: Per-target directory lookups (app policy)
            fs: Filesystem adapter (defaults to the local disk)
            events: Event sink for install:* events
            env: Environment reader, used for global-scope store paths
            home: Home directory, required for global-scope installs
        """
        self.registry = registry
        self.fs = fs or LocalFileSystem()
        self.events = events or NullEventBus()
        self.env = env
        self.home = home

    def canonical_path_for(self, request: InstallRequest, scope: InstallScope, cwd: Path) -> Path:
        _, cognitive_type, install_name = request_info(request)
        return canonical_path(
            cognitive_type,
            DEFAULT_CATEGORY,
            install_name,
            scope,
            project_root=cwd if scope == "project" else None,
            env=self.env,
            home=self.home,
        )

    async def install(self, request: InstallRequest, target: InstallTarget, cwd: Path) -> InstallResult:
        """
        Install one unit for one target.

        Args:
            request: Local, remote or multi-file request
            target: Target id, scope and mode
            cwd: Project root (used for project scope)

        Returns:
            InstallResult; `symlink_failed` is set when symlink mode had to copy
        """
        name, cognitive_type, install_name = request_info(request)
        self.events.emit(
            "install:start", InstallStartPayload(cognitive=name, target=target.target_id, mode=target.mode)
        )

        log = ActionLog()
        backups: list[Path] = []
        canonical: Path | None = None

        try:
            canonical = self.canonical_path_for(request, target.scope, Path(cwd))
            await self._materialize(request, canonical, cognitive_type, log)

            path = canonical
            symlink_failed = False

            if not self.registry.is_universal(target.target_id, cognitive_type):
                target_path = target_install_path(
                    target.target_id, cognitive_type, install_name, target.scope, self.registry
                )
                if target_path is not None:
                    path = target_path
                    if target.mode == "symlink":
                        symlink_failed = await self._link_to_target(canonical, target_path, log, backups)
                    else:
                        await self._copy_to_target(canonical, target_path, log, backups)

            result = InstallResult(
                success=True,
                target_id=target.target_id,
                cognitive_name=name,
                cognitive_type=cognitive_type,
                path=path,
                mode=target.mode,
                canonical_path=canonical,
                symlink_failed=symlink_failed,
            )
            await self._discard_backups(backups)
            logger.info(f"Installed {name} for {target.target_id} at {path}")

        except Exception as e:
            logger.error(f"Failed to install {name} for {target.target_id}: {e}")
            outcome = await rollback(log.actions, self.fs)
            if outcome.failed:
                logger.warning(f"Rollback left {outcome.failed} step(s) undone for {name}")
            result = InstallResult(
                success=False,
                target_id=target.target_id,
                cognitive_name=name,
                cognitive_type=cognitive_type,
                path=canonical or Path(cwd),
                mode=target.mode,
                canonical_path=canonical,
                error=str(e) or type(e).__name__,
            )

        self.events.emit(
            "install:complete", InstallCompletePayload(cognitive=name, target=target.target_id, result=result)
        )
        return result

    async def install_all(
        self, request: InstallRequest, targets: list[InstallTarget], cwd: Path
    ) -> list[InstallResult]:
        """Install one unit for several targets, one after the other.

        Sequential so that a failed install rolling back a freshly created
        canonical directory cannot race another target. One target failing
        does not stop the others.
        """
        return [await self.install(request, target, cwd) for target in targets]

    async def remove(self, cognitive_name: str, cognitive_type: CognitiveType, target: InstallTarget) -> bool:
        """
        Remove a unit from one target's directory.

        Returns:
            True if something was removed; False if it was already gone, the
            target has no directory for this type, or removal failed
        """
        path = target_install_path(target.target_id, cognitive_type, cognitive_name, target.scope, self.registry)
        if path is None:
            return False

        try:
            await self.fs.lstat(path)
        except OSError:
            return False

        try:
            await self.fs.remove(path, recursive=True)
        except Exception as e:
            logger.warning(f"Failed to remove {path}: {e}")
            return False

        logger.info(f"Removed {cognitive_name} from {target.target_id}")
        return True

    def symlink_paths(
        self,
        canonical: Path,
        name: str,
        cognitive_type: CognitiveType,
        target_ids: list[str],
        scope: InstallScope,
    ) -> list[tuple[str, Path]]:
        """Target-specific paths for the non-universal targets among `target_ids`."""
        paths = []
        for target_id in target_ids:
            if self.registry.is_universal(target_id, cognitive_type):
                continue
            path = target_install_path(target_id, cognitive_type, name, scope, self.registry)
            if path is not None and path != canonical:
                paths.append((target_id, path))
        return paths

    # -- helpers ----------------------------------------------------------

    async def _materialize(
        self, request: InstallRequest, canonical: Path, cognitive_type: CognitiveType, log: ActionLog
    ) -> None:
        if not await self.fs.exists(canonical):
            await self.fs.mkdir(canonical)
            log.record("create_directory", canonical)

        match request:
            case LocalInstallRequest(cognitive=cognitive):
                await deep_copy(cognitive.path, canonical, self.fs)
            case RemoteInstallRequest(cognitive=cognitive):
                await self._write_file(canonical / type_file_name(cognitive_type), cognitive.content, log)
            case MultiFileInstallRequest(cognitive=cognitive):
                outcomes = await asyncio.gather(
                    *(
                        self._write_file(canonical / file_name, content, log)
                        for file_name, content in cognitive.files.items()
                    ),
                    return_exceptions=True,
                )
                for outcome in outcomes:
                    if isinstance(outcome, Exception):
                        raise outcome
            case _:
                assert_never(request)

        logger.debug(f"Materialized {cognitive_type} at {canonical}")

    async def _write_file(self, path: Path, content: str, log: ActionLog) -> None:
        existed = await self.fs.exists(path)
        await atomic_write(path, content, self.fs)
        if not existed:
            log.record("write_file", path)

    async def _move_aside(self, target_path: Path, log: ActionLog, backups: list[Path]) -> None:
        """Rename any previous entry at `target_path` to a backup that rollback can restore."""
        try:
            await self.fs.lstat(target_path)
        except FileNotFoundError:
            return
        backup = temp_path_for(target_path)
        await self.fs.rename(target_path, backup)
        log.record("remove_existing", target_path, backup_path=backup)
        backups.append(backup)

    async def _link_to_target(self, canonical: Path, target_path: Path, log: ActionLog, backups: list[Path]) -> bool:
        """Symlink `target_path` to the canonical dir, copying when linking fails.

        Returns:
            True if the link failed and the unit was copied instead

        Raises:
            SymlinkError: If the link failed and the fallback copy failed too
        """
        if target_path != canonical:
            await self._move_aside(target_path, log, backups)

        if await create_symlink(canonical, target_path, self.fs):
            log.record("create_symlink", target_path)
            self.events.emit("install:symlink", InstallLinkPayload(source=str(canonical), target=str(target_path)))
            return False

        logger.warning(f"Symlink to {target_path} failed, copying instead")
        try:
            await self._copy_to_target(canonical, target_path, log, backups)
        except Exception as e:
            raise SymlinkError(canonical, target_path) from e
        return True

    async def _copy_to_target(self, canonical: Path, target_path: Path, log: ActionLog, backups: list[Path]) -> None:
        # Copying into an old symlink would write into the store.
        await self._move_aside(target_path, log, backups)

        log.record("copy_directory", target_path)
        await deep_copy(canonical, target_path, self.fs)
        self.events.emit("install:copy", InstallLinkPayload(source=str(canonical), target=str(target_path)))

    async def _discard_backups(self, backups: list[Path]) -> None:
        for backup in backups:
            try:
                await self.fs.remove(backup, recursive=True)
            except OSError as e:
                logger.debug(f"Could not remove backup {backup}: {e}")
