"""Configuration resolution.

`resolve_config` is the edge where process state (cwd, home, environment)
enters; everything downstream receives explicit values.
"""

import os
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from .cache import DEFAULT_CLONE_TTL_MS
from .cache import DEFAULT_FETCH_TTL_MS
from .exceptions import InvalidConfigError
from .lock import DEFAULT_LOCK_FILE_NAME
from .paths import global_base
from .paths import project_store_root
from .protocols import EnvReader

DEFAULT_FETCH_TIMEOUT_MS = 15_000
DEFAULT_CLONE_TIMEOUT_MS = 30_000
DEFAULT_CLONE_DEPTH = 1


def _environ_reader(key: str) -> str | None:
    return os.environ.get(key)


class SyncConfig(BaseModel):
    """Resolved settings for one project."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    cwd: Path
    home_dir: Path
    lock_file_name: str = DEFAULT_LOCK_FILE_NAME
    clone_ttl_ms: int = Field(default=DEFAULT_CLONE_TTL_MS, gt=0)
    fetch_ttl_ms: int = Field(default=DEFAULT_FETCH_TTL_MS, gt=0)
    fetch_timeout_ms: int = Field(default=DEFAULT_FETCH_TIMEOUT_MS, gt=0)
    clone_timeout_ms: int = Field(default=DEFAULT_CLONE_TIMEOUT_MS, gt=0)
    clone_depth: int = Field(default=DEFAULT_CLONE_DEPTH, gt=0)
    env: EnvReader = Field(default=_environ_reader, exclude=True)

    @property
    def store_root(self) -> Path:
        """Project-scoped canonical store root."""
        return project_store_root(self.cwd)

    @property
    def lock_path(self) -> Path:
        return self.store_root / self.lock_file_name

    @property
    def global_store_root(self) -> Path:
        return global_base(self.env, self.home_dir)


def resolve_config(env: EnvReader | None = None, **overrides) -> SyncConfig:
    """Build a validated SyncConfig, filling unset fields from the process.

    Args:
        env: Environment reader (defaults to os.environ)
        **overrides: Any SyncConfig field

    Raises:
        InvalidConfigError: If a field fails validation

    Example:
        >>> config = resolve_config(cwd=Path("/work/app"), lock_file_name="team-lock.json")
        >>> config.lock_path
        PosixPath('/work/app/.agents/cognit/team-lock.json')
    """
    lock_file_name = overrides.get("lock_file_name", DEFAULT_LOCK_FILE_NAME)
    if not lock_file_name or not str(lock_file_name).endswith(".json"):
        raise InvalidConfigError("lock_file_name", "must be non-empty and end with .json")

    values = {
        "cwd": Path.cwd(),
        "home_dir": Path.home(),
        "env": env or _environ_reader,
        **overrides,
    }
    try:
        return SyncConfig(**values)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "config"
        raise InvalidConfigError(field, error["msg"]) from e
