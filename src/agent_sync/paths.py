"""Canonical store and per-target install path resolution.

Environment and home directory are injected; nothing here reads process
globals. Names are sanitized before any path is built.
"""

import logging
import sys
from pathlib import Path

from .exceptions import ConfigError
from .exceptions import PathTraversalError
from .models import AGENTS_DIR
from .models import COGNIT_DIR
from .models import CognitiveType
from .models import InstallScope
from .models import type_subdir
from .protocols import EnvReader
from .protocols import FileSystemProtocol
from .protocols import TargetRegistryProtocol
from .security import is_path_safe
from .security import sanitize_name

logger = logging.getLogger(__name__)

PROJECT_MARKERS = (
    Path(AGENTS_DIR) / COGNIT_DIR,
    Path(".git"),
    Path("pyproject.toml"),
    Path("package.json"),
)


def _no_env(key: str) -> str | None:
    return None


def global_base(env: EnvReader, home: Path, platform: str = sys.platform) -> Path:
    """Platform-specific root of the global canonical store.

    - macOS (and other unix): ~/.agents/cognit
    - Linux: $XDG_DATA_HOME/cognit or ~/.local/share/cognit
    - Windows: %APPDATA%\\cognit or ~/AppData/Roaming/cognit

    Args:
        env: Environment reader
        home: User home directory
        platform: `sys.platform` style identifier

    Example:
        >>> global_base(lambda key: None, Path("/home/u"), platform="linux")
        PosixPath('/home/u/.local/share/cognit')
    """
    if platform == "win32":
        app_data = env("APPDATA")
        if app_data:
            return Path(app_data) / COGNIT_DIR
        return home / "AppData" / "Roaming" / COGNIT_DIR
    if platform.startswith("linux"):
        xdg = env("XDG_DATA_HOME")
        if xdg:
            return Path(xdg) / COGNIT_DIR
        return home / ".local" / "share" / COGNIT_DIR
    return home / AGENTS_DIR / COGNIT_DIR


def project_store_root(project_root: Path) -> Path:
    """Root of the project-scoped canonical store (also holds the lock file)."""
    return Path(project_root) / AGENTS_DIR / COGNIT_DIR


def canonical_path(
    cognitive_type: CognitiveType,
    category: str,
    name: str,
    scope: InstallScope,
    project_root: Path | None = None,
    env: EnvReader | None = None,
    home: Path | None = None,
) -> Path:
    """Canonical store directory for a unit: <base>/<typeSubdir>/<category>/<name>.

    Args:
        cognitive_type: Unit type (selects the type subdirectory)
        category: Category slug (sanitized)
        name: Unit name (sanitized)
        scope: "project" stores under project_root, "global" under global_base()
        project_root: Required for project scope
        env: Environment reader (global scope)
        home: Home directory (required for global scope)

    Raises:
        ConfigError: If the scope's root (project_root or home) is missing
        PathTraversalError: If the result would escape the store base
    """
    safe_name = sanitize_name(name)
    safe_category = sanitize_name(category)

    if scope == "project":
        if project_root is None:
            raise ConfigError("project_root is required for project scope", context={"name": name})
        base = project_store_root(project_root)
    else:
        if home is None:
            raise ConfigError("home directory is required for global scope", context={"name": name})
        base = global_base(env or _no_env, home)

    path = base / type_subdir(cognitive_type) / safe_category / safe_name
    if not is_path_safe(base, path):
        raise PathTraversalError(path)
    return path


def target_install_path(
    target_id: str,
    cognitive_type: CognitiveType,
    name: str,
    scope: InstallScope,
    registry: TargetRegistryProtocol,
) -> Path | None:
    """Target-specific install directory for a unit, or None if the target has no dir configured."""
    directory = registry.get_dir(target_id, cognitive_type, scope)
    if directory is None:
        return None
    path = Path(directory) / sanitize_name(name)
    if not is_path_safe(directory, path):
        raise PathTraversalError(path)
    return path


async def find_project_root(start: Path, fs: FileSystemProtocol) -> Path | None:
    """Walk up from `start` looking for a project marker.

    Markers: .agents/cognit, .git, pyproject.toml, package.json.

    Returns:
        First ancestor (or `start` itself) holding a marker, None if the
        filesystem root is reached without a match
    """
    current = Path(start).absolute()
    while True:
        for marker in PROJECT_MARKERS:
            if await fs.exists(current / marker):
                logger.debug(f"Project root found at {current} (marker: {marker})")
                return current
        parent = current.parent
        if parent == current:
            return None
        current = parent
