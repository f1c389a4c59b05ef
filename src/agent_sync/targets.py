"""Install target registry.

The per-tool directory tables are app policy; this module only holds
whatever configs the app registers and answers path lookups for them.
"""

import logging
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .exceptions import ConfigError
from .models import AGENTS_DIR
from .models import COGNITIVE_TYPES
from .models import CognitiveType
from .models import InstallScope
from .models import type_subdir

logger = logging.getLogger(__name__)


class TargetDirs(BaseModel):
    """Install directories for one cognitive type.

    `local` is relative to the project root; `global_dir` may start with `~/`.
    """

    model_config = ConfigDict(frozen=True)

    local: str
    global_dir: str | None = None


class TargetConfig(BaseModel):
    """Directory layout of one install target (one tool)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    display_name: str = ""
    local_root: str
    dirs: dict[CognitiveType, TargetDirs] = Field(default_factory=dict)

    @classmethod
    def standard(cls, name: str, local_root: str, global_root: str | None = None) -> "TargetConfig":
        """Config using `<root>/<typeSubdir>` for every cognitive type.

        Example:
            >>> TargetConfig.standard("cursor", ".cursor", "~/.cursor").dirs["skill"].local
            '.cursor/skills'
        """
        dirs = {
            cognitive_type: TargetDirs(
                local=f"{local_root}/{type_subdir(cognitive_type)}",
                global_dir=f"{global_root}/{type_subdir(cognitive_type)}" if global_root else None,
            )
            for cognitive_type in COGNITIVE_TYPES
        }
        return cls(name=name, display_name=name, local_root=local_root, dirs=dirs)


class TargetRegistry:
    """Target lookups against a project root and home directory (both injected)."""

    def __init__(self, project_root: Path, home: Path, targets: list[TargetConfig] | None = None):
        self.project_root = Path(project_root)
        self.home = Path(home)
        self._targets: dict[str, TargetConfig] = {}
        for config in targets or []:
            self.register(config)

    def register(self, config: TargetConfig) -> None:
        if config.name in self._targets:
            raise ConfigError(f"Target '{config.name}' is already registered", context={"target": config.name})
        self._targets[config.name] = config
        logger.debug(f"Registered target {config.name} (root: {config.local_root})")

    def get(self, target_id: str) -> TargetConfig | None:
        return self._targets.get(target_id)

    def list_targets(self) -> list[str]:
        return list(self._targets)

    def get_dir(self, target_id: str, cognitive_type: CognitiveType, scope: InstallScope) -> Path | None:
        config = self._targets.get(target_id)
        if config is None:
            return None
        dirs = config.dirs.get(cognitive_type)
        if dirs is None:
            return None
        if scope == "project":
            return self.project_root / dirs.local
        if dirs.global_dir is None:
            return None
        return self._expand_home(dirs.global_dir)

    def is_universal(self, target_id: str, cognitive_type: CognitiveType) -> bool:
        config = self._targets.get(target_id)
        return config is not None and config.local_root == AGENTS_DIR

    def universal_targets(self) -> list[str]:
        return [name for name, config in self._targets.items() if config.local_root == AGENTS_DIR]

    def _expand_home(self, directory: str) -> Path:
        if directory == "~":
            return self.home
        if directory.startswith("~/"):
            return self.home / directory[2:]
        return Path(directory)
