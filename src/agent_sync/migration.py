"""Lock file schema migration.

Recognized shapes, by their `version` discriminator:

- v3: `skills` map, no URL, hash or type per entry
- v4: `cognitives` map with `cognitiveFolderHash` and optional type
- v5: current shape (passed through)

Anything else (no version, non-integer version, unknown version, a payload
whose entry map is not an object) degrades to an empty lock file.
Corruption means "nothing installed", never an exception to callers.

Entries are read one at a time. Missing fields take their defaults and an
unknown cognitive type reads as `skill`; an entry that still cannot be read
is dropped with a warning while the rest of the ledger survives.
"""

import logging
from collections.abc import Callable
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import ValidationError

from .events import LockMigratePayload
from .exceptions import LockMigrationError
from .models import COGNITIVE_TYPES
from .models import CognitiveType
from .protocols import EventEmitter
from .schema import LOCK_VERSION
from .schema import LockEntry
from .schema import LockFile
from .schema import create_empty_lock_file

logger = logging.getLogger(__name__)

_LEGACY_CONFIG = ConfigDict(extra="ignore", populate_by_name=True)


class _SkillEntryV3(BaseModel):
    model_config = _LEGACY_CONFIG

    source: str = ""
    sourceType: str = ""
    installedAt: str = ""
    updatedAt: str = ""


class _LockFileV3(BaseModel):
    model_config = _LEGACY_CONFIG

    version: Literal[3]
    skills: dict[str, Any] = {}
    lastSelectedAgents: Any = None


class _CognitiveEntryV4(BaseModel):
    model_config = _LEGACY_CONFIG

    source: str = ""
    sourceType: str = ""
    sourceUrl: str = ""
    cognitivePath: str | None = None
    cognitiveType: Any = "skill"
    cognitiveFolderHash: str = ""
    installedAt: str = ""
    updatedAt: str = ""


class _LockFileV4(BaseModel):
    model_config = _LEGACY_CONFIG

    version: Literal[4]
    cognitives: dict[str, Any] = {}
    lastSelectedAgents: Any = None


def _coerce_type(name: str, value: Any) -> CognitiveType:
    if value in COGNITIVE_TYPES:
        return value
    logger.warning(f"Lock entry '{name}' has unknown cognitive type {value!r}, reading it as skill")
    return "skill"


def _selected_targets(value: Any) -> list[str] | None:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return value
    if value is not None:
        logger.warning(f"Ignoring malformed lastSelectedAgents: {value!r}")
    return None


def _salvage(raw_entries: dict[str, Any], to_entry: Callable[[str, Any], LockEntry]) -> dict[str, LockEntry]:
    """Convert each raw entry on its own; unreadable ones are dropped, not fatal."""
    entries = {}
    for name, raw in raw_entries.items():
        if not name.strip():
            logger.warning("Dropping lock entry with an empty name")
            continue
        try:
            entries[name] = to_entry(name, raw)
        except ValidationError as e:
            logger.warning(f"Dropping unreadable lock entry '{name}': {e}")
    return entries


def _entry_from_v3(name: str, raw: Any) -> LockEntry:
    old = _SkillEntryV3.model_validate(raw)
    return LockEntry(
        source=old.source,
        source_type=old.sourceType,
        cognitive_type="skill",
        installed_at=old.installedAt,
        updated_at=old.updatedAt,
    )


def _entry_from_v4(name: str, raw: Any) -> LockEntry:
    old = _CognitiveEntryV4.model_validate(raw)
    return LockEntry(
        source=old.source,
        source_type=old.sourceType,
        source_url=old.sourceUrl,
        content_hash=old.cognitiveFolderHash,
        cognitive_type=_coerce_type(name, old.cognitiveType),
        cognitive_path=old.cognitivePath,
        installed_at=old.installedAt,
        updated_at=old.updatedAt,
    )


def _entry_from_v5(name: str, raw: Any) -> LockEntry:
    if isinstance(raw, dict) and raw.get("cognitiveType") not in COGNITIVE_TYPES:
        raw = {**raw, "cognitiveType": _coerce_type(name, raw.get("cognitiveType"))}
    return LockEntry.model_validate(raw)


def _migrate_v3(data: dict[str, Any]) -> LockFile:
    old = _LockFileV3.model_validate(data)
    return LockFile(
        cognitives=_salvage(old.skills, _entry_from_v3),
        last_selected_targets=_selected_targets(old.lastSelectedAgents),
    )


def _migrate_v4(data: dict[str, Any]) -> LockFile:
    old = _LockFileV4.model_validate(data)
    return LockFile(
        cognitives=_salvage(old.cognitives, _entry_from_v4),
        last_selected_targets=_selected_targets(old.lastSelectedAgents),
    )


MIGRATIONS: dict[int, Callable[[dict[str, Any]], LockFile]] = {
    3: _migrate_v3,
    4: _migrate_v4,
}


def migrate(data: dict[str, Any], from_version: int) -> LockFile:
    """Translate a legacy payload to the current shape.

    Raises:
        LockMigrationError: If the payload's entry map is not an object
    """
    try:
        return MIGRATIONS[from_version](data)
    except (ValidationError, ValueError, KeyError) as e:
        raise LockMigrationError(from_version, LOCK_VERSION) from e


def read_with_migration(data: Any, events: EventEmitter) -> LockFile:
    """Return `data` as a current LockFile, migrating legacy shapes.

    Emits exactly one `lock:migrate` event per successful migration.
    Unrecoverable data degrades to an empty lock file.
    """
    if not isinstance(data, dict):
        logger.warning("Lock file is not a JSON object, treating as empty")
        return create_empty_lock_file()

    version = data.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        logger.warning(f"Lock file has no usable version ({version!r}), treating as empty")
        return create_empty_lock_file()

    if version == LOCK_VERSION:
        cognitives = data.get("cognitives", {})
        if not isinstance(cognitives, dict):
            logger.warning("Lock file cognitives is not an object, treating as empty")
            return create_empty_lock_file()
        return LockFile(
            cognitives=_salvage(cognitives, _entry_from_v5),
            last_selected_targets=_selected_targets(data.get("lastSelectedAgents")),
        )

    if version not in MIGRATIONS:
        logger.warning(f"Unknown lock file version {version}, treating as empty")
        return create_empty_lock_file()

    try:
        lock = migrate(data, version)
    except LockMigrationError as e:
        logger.warning(f"{e.message}, treating as empty")
        return create_empty_lock_file()

    events.emit("lock:migrate", LockMigratePayload(from_version=version, to_version=LOCK_VERSION))
    logger.info(f"Migrated lock file from v{version} to v{LOCK_VERSION} ({len(lock.cognitives)} entries)")
    return lock
