"""Name sanitization and path containment checks."""

import os
import re
from pathlib import Path

from .exceptions import PathTraversalError

MAX_NAME_LENGTH = 255
FALLBACK_NAME = "unnamed-cognitive"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_UNSAFE_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-+")


def sanitize_name(name: str) -> str:
    """Sanitize a name to a kebab-case, filesystem-safe string.

    Names containing separators, traversal sequences, NUL or other control
    characters are not repaired: they collapse to FALLBACK_NAME.

    Examples:
        >>> sanitize_name("My Cool Skill")
        'my-cool-skill'
        >>> sanitize_name("../etc/passwd")
        'unnamed-cognitive'
    """
    if not name or "/" in name or "\\" in name or _CONTROL_CHARS.search(name):
        return FALLBACK_NAME
    if "../" in name or "./" in name or name in (".", ".."):
        return FALLBACK_NAME

    sanitized = _HYPHEN_RUNS.sub("-", _UNSAFE_CHARS.sub("-", name.lower()))
    sanitized = sanitized.strip(".-")

    if not sanitized:
        return FALLBACK_NAME
    return sanitized[:MAX_NAME_LENGTH]


def validate_safe_name(name: str) -> str:
    """Return `name` unchanged if it is usable as a single path component.

    Raises:
        PathTraversalError: If the name is empty, `.`/`..`, or contains a
            separator, a colon, NUL or a control character
    """
    if not name or name in (".", "..") or re.search(r"[/\\:]", name) or _CONTROL_CHARS.search(name):
        raise PathTraversalError(name)
    return name


def is_path_safe(base_path: str | Path, target_path: str | Path) -> bool:
    """Check that `target_path` is `base_path` or lies inside it (lexically)."""
    base = os.path.abspath(os.path.normpath(base_path))
    target = os.path.abspath(os.path.normpath(target_path))
    return target == base or target.startswith(base.rstrip(os.sep) + os.sep)
