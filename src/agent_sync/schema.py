"""Lock file schema (current version).

On-disk format is JSON with camelCase keys:

    {
      "version": 5,
      "cognitives": {
        "react-hooks": {
          "source": "owner/repo",
          "sourceType": "github",
          "sourceUrl": "https://github.com/owner/repo",
          "contentHash": "9f86d0...",
          "cognitiveType": "skill",
          "installedAt": "2025-01-01T00:00:00+00:00",
          "updatedAt": "2025-01-01T00:00:00+00:00"
        }
      },
      "lastSelectedAgents": ["cursor"]
    }
"""

import json
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic.alias_generators import to_camel

from .models import COGNITIVE_TYPES
from .models import CognitiveType

LOCK_VERSION = 5


class LockEntry(BaseModel):
    """Provenance and integrity record of one installed unit."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    source: str = ""
    source_type: str = ""
    source_url: str = ""
    content_hash: str = ""
    cognitive_type: CognitiveType
    category: str | None = None
    cognitive_path: str | None = None
    installed_at: str = ""
    updated_at: str = ""


class LockFile(BaseModel):
    """The whole ledger for one project root."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    version: Literal[5] = LOCK_VERSION
    cognitives: dict[str, LockEntry] = Field(default_factory=dict)
    last_selected_targets: list[str] | None = Field(default=None, alias="lastSelectedAgents")

    @field_validator("cognitives")
    @classmethod
    def _check_keys(cls, value: dict[str, LockEntry]) -> dict[str, LockEntry]:
        for name in value:
            if not name or not name.strip():
                raise ValueError("lock entry names must be non-empty")
        return value

    def to_json(self) -> str:
        """Stable serialization: 2-space indent, trailing newline, unset optionals omitted."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def create_empty_lock_file() -> LockFile:
    return LockFile()


def make_lock_key(cognitive_type: CognitiveType, name: str) -> str:
    """Composite key `{type}:{name}`."""
    return f"{cognitive_type}:{name}"


def parse_lock_key(key: str) -> tuple[CognitiveType, str] | None:
    """Split a composite key; None if it is not `{type}:{name}` with a known type."""
    cognitive_type, sep, name = key.partition(":")
    if not sep or not name or cognitive_type not in COGNITIVE_TYPES:
        return None
    return cognitive_type, name  # type: ignore[return-value]
