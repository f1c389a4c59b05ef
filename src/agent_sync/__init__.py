"""agent-sync - Canonical store, multi-target installer and lock file for cognitives.

This is library mechanism: apps inject policy (project root, home directory,
target tables, repair strategy) and collaborators (filesystem, git, fetcher).
"""

from .cache import CloneCache
from .cache import FetchCache
from .cache import HttpFetcher
from .config import SyncConfig
from .config import resolve_config
from .events import CapturingEventBus
from .events import EventBus
from .exceptions import CacheError
from .exceptions import CognitError
from .exceptions import ConfigError
from .exceptions import CyclicSymlinkError
from .exceptions import FetchError
from .exceptions import FileWriteError
from .exceptions import InstallError
from .exceptions import InvalidConfigError
from .exceptions import LockError
from .exceptions import LockMigrationError
from .exceptions import LockReadError
from .exceptions import LockWriteError
from .exceptions import OperationError
from .exceptions import PathTraversalError
from .exceptions import SymlinkError
from .fileops import atomic_write
from .fileops import create_symlink
from .fileops import deep_copy
from .fs import LocalFileSystem
from .installer import Installer
from .integrity import content_hash
from .integrity import directory_hash
from .integrity import verify_content_hash
from .integrity import verify_directory_hash
from .lock import LockManager
from .memory import MemoryFileSystem
from .migration import read_with_migration
from .models import Cognitive
from .models import CognitiveType
from .models import InstallResult
from .models import InstallTarget
from .models import LocalInstallRequest
from .models import MultiFileCognitive
from .models import MultiFileInstallRequest
from .models import RemoteCognitive
from .models import RemoteInstallRequest
from .paths import canonical_path
from .paths import find_project_root
from .paths import global_base
from .protocols import FetcherProtocol
from .protocols import FileSystemProtocol
from .protocols import GitClientProtocol
from .protocols import TargetRegistryProtocol
from .reconcile import CheckResult
from .reconcile import Reconciler
from .reconcile import SyncResult
from .retry import with_retry
from .rollback import rollback
from .schema import LockEntry
from .schema import LockFile
from .schema import make_lock_key
from .schema import parse_lock_key
from .security import sanitize_name
from .targets import TargetConfig
from .targets import TargetRegistry

__all__ = [
    # Models
    "Cognitive",
    "CognitiveType",
    "RemoteCognitive",
    "MultiFileCognitive",
    "LocalInstallRequest",
    "RemoteInstallRequest",
    "MultiFileInstallRequest",
    "InstallTarget",
    "InstallResult",
    # Paths
    "canonical_path",
    "find_project_root",
    "global_base",
    "sanitize_name",
    # File operations
    "atomic_write",
    "create_symlink",
    "deep_copy",
    "rollback",
    # Installation
    "Installer",
    "TargetConfig",
    "TargetRegistry",
    # Lock file
    "LockManager",
    "LockEntry",
    "LockFile",
    "make_lock_key",
    "parse_lock_key",
    "read_with_migration",
    # Integrity
    "content_hash",
    "directory_hash",
    "verify_content_hash",
    "verify_directory_hash",
    # Reconciliation
    "Reconciler",
    "CheckResult",
    "SyncResult",
    # Source cache
    "CloneCache",
    "FetchCache",
    "HttpFetcher",
    "with_retry",
    # Configuration
    "SyncConfig",
    "resolve_config",
    # Collaborators
    "EventBus",
    "CapturingEventBus",
    "FileSystemProtocol",
    "LocalFileSystem",
    "MemoryFileSystem",
    "GitClientProtocol",
    "FetcherProtocol",
    "TargetRegistryProtocol",
    # Exceptions
    "CognitError",
    "ConfigError",
    "InvalidConfigError",
    "InstallError",
    "PathTraversalError",
    "SymlinkError",
    "FileWriteError",
    "CyclicSymlinkError",
    "LockError",
    "LockReadError",
    "LockWriteError",
    "LockMigrationError",
    "CacheError",
    "FetchError",
    "OperationError",
]

__version__ = "0.1.0"
