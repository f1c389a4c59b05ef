"""Content units and installer value types.

Content units are produced by discovery or provider pipelines outside this
package and are immutable once constructed.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any
from typing import Literal
from typing import NamedTuple

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from .security import validate_safe_name

CognitiveType = Literal["skill", "agent", "prompt", "rule"]
InstallScope = Literal["project", "global"]
InstallMode = Literal["symlink", "copy"]

AGENTS_DIR = ".agents"
COGNIT_DIR = "cognit"
DEFAULT_CATEGORY = "general"


class CognitiveTypeConfig(NamedTuple):
    subdir: str
    file_name: str


COGNITIVE_TYPE_CONFIGS: dict[str, CognitiveTypeConfig] = {
    "skill": CognitiveTypeConfig("skills", "SKILL.md"),
    "agent": CognitiveTypeConfig("agents", "AGENT.md"),
    "prompt": CognitiveTypeConfig("prompts", "PROMPT.md"),
    "rule": CognitiveTypeConfig("rules", "RULE.md"),
}

COGNITIVE_TYPES: tuple[str, ...] = tuple(COGNITIVE_TYPE_CONFIGS)


def type_subdir(cognitive_type: CognitiveType) -> str:
    return COGNITIVE_TYPE_CONFIGS[cognitive_type].subdir


def type_file_name(cognitive_type: CognitiveType) -> str:
    return COGNITIVE_TYPE_CONFIGS[cognitive_type].file_name


class Cognitive(BaseModel):
    """A unit discovered on local disk (source directory plus its main file)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str = ""
    path: Path
    type: CognitiveType
    raw_content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class RemoteCognitive(BaseModel):
    """A single-file unit fetched by a provider."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str = ""
    content: str
    install_name: str
    source_url: str
    provider_id: str
    source_identifier: str = Field(min_length=1)
    type: CognitiveType
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("install_name")
    @classmethod
    def _check_install_name(cls, value: str) -> str:
        return validate_safe_name(value)


class MultiFileCognitive(BaseModel):
    """A unit delivered as several files (e.g. from a well-known index endpoint)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    install_name: str
    description: str = ""
    type: CognitiveType
    source_url: str
    files: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("install_name")
    @classmethod
    def _check_install_name(cls, value: str) -> str:
        return validate_safe_name(value)

    @field_validator("files")
    @classmethod
    def _check_file_names(cls, value: dict[str, str]) -> dict[str, str]:
        for file_name in value:
            validate_safe_name(file_name)
        return value


# Install requests: a closed set of kinds, consumed with `match`.


@dataclass(frozen=True)
class LocalInstallRequest:
    cognitive: Cognitive
    kind: Literal["local"] = "local"


@dataclass(frozen=True)
class RemoteInstallRequest:
    cognitive: RemoteCognitive
    kind: Literal["remote"] = "remote"


@dataclass(frozen=True)
class MultiFileInstallRequest:
    cognitive: MultiFileCognitive
    kind: Literal["multi_file"] = "multi_file"


InstallRequest = LocalInstallRequest | RemoteInstallRequest | MultiFileInstallRequest


@dataclass(frozen=True)
class InstallTarget:
    """One fan-out destination."""

    target_id: str
    scope: InstallScope = "project"
    mode: InstallMode = "symlink"


@dataclass(frozen=True)
class InstallResult:
    """Outcome of installing one unit to one target.

    Returned, never raised: partial failure across a batch is data.
    """

    success: bool
    target_id: str
    cognitive_name: str
    cognitive_type: CognitiveType
    path: Path
    mode: InstallMode
    canonical_path: Path | None = None
    symlink_failed: bool = False
    error: str | None = None
