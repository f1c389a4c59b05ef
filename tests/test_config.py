"""Tests for configuration resolution and the target registry."""

from pathlib import Path

import pytest
from agent_sync import ConfigError
from agent_sync import InvalidConfigError
from agent_sync import TargetConfig
from agent_sync import TargetRegistry
from agent_sync import resolve_config
from agent_sync.targets import TargetDirs


def test_resolve_config_defaults():
    """Test default lock name, TTLs and derived store paths."""
    config = resolve_config(cwd=Path("/work/app"), home_dir=Path("/home/u"))

    assert config.lock_file_name == "cognit-lock.json"
    assert config.clone_ttl_ms == 3_600_000
    assert config.fetch_ttl_ms == 900_000
    assert config.store_root == Path("/work/app/.agents/cognit")
    assert config.lock_path == Path("/work/app/.agents/cognit/cognit-lock.json")


def test_resolve_config_fills_process_state():
    """Test that cwd and home default to the current process."""
    config = resolve_config()

    assert config.cwd == Path.cwd()
    assert config.home_dir == Path.home()


def test_resolve_config_reads_environment_by_default(monkeypatch):
    """Test that the default env reader sees os.environ."""
    monkeypatch.setenv("AGENT_SYNC_TEST_VALUE", "from-env")

    config = resolve_config(cwd=Path("/w"), home_dir=Path("/h"))

    assert config.env("AGENT_SYNC_TEST_VALUE") == "from-env"


def test_resolve_config_injected_env():
    """Test that an injected env reader replaces os.environ."""
    config = resolve_config(env={"XDG_DATA_HOME": "/data"}.get, cwd=Path("/w"), home_dir=Path("/h"))

    assert config.env("XDG_DATA_HOME") == "/data"
    assert config.env("HOME") is None


def test_config_is_frozen():
    """Test that resolved config cannot be mutated."""
    config = resolve_config(cwd=Path("/w"), home_dir=Path("/h"))

    with pytest.raises(Exception):
        config.cwd = Path("/elsewhere")


@pytest.mark.parametrize("lock_file_name", ["", "lock.yaml", "cognit-lock"])
def test_invalid_lock_file_name(lock_file_name):
    """Test that lock file names must end in .json."""
    with pytest.raises(InvalidConfigError) as exc_info:
        resolve_config(cwd=Path("/w"), home_dir=Path("/h"), lock_file_name=lock_file_name)

    assert exc_info.value.field == "lock_file_name"


@pytest.mark.parametrize(
    "field", ["clone_ttl_ms", "fetch_ttl_ms", "fetch_timeout_ms", "clone_timeout_ms", "clone_depth"]
)
def test_non_positive_numbers_rejected(field):
    """Test that TTLs, timeouts and depth must be positive."""
    with pytest.raises(InvalidConfigError) as exc_info:
        resolve_config(cwd=Path("/w"), home_dir=Path("/h"), **{field: 0})

    assert exc_info.value.field == field
    assert isinstance(exc_info.value, ConfigError)


class TestTargetRegistry:
    def test_standard_layout(self):
        """Test per-type directories of a standard target in both scopes."""
        registry = TargetRegistry(
            Path("/p"), Path("/home/u"), [TargetConfig.standard("cursor", ".cursor", "~/.cursor")]
        )

        assert registry.get_dir("cursor", "prompt", "project") == Path("/p/.cursor/prompts")
        assert registry.get_dir("cursor", "prompt", "global") == Path("/home/u/.cursor/prompts")
        assert registry.list_targets() == ["cursor"]

    def test_missing_dirs(self):
        """Test that unconfigured types, scopes and targets resolve to None."""
        config = TargetConfig(
            name="partial", local_root=".partial", dirs={"skill": TargetDirs(local=".partial/skills")}
        )
        registry = TargetRegistry(Path("/p"), Path("/home/u"), [config])

        assert registry.get_dir("partial", "skill", "global") is None
        assert registry.get_dir("partial", "rule", "project") is None
        assert registry.get_dir("nope", "skill", "project") is None

    def test_universal(self):
        """Test detection of targets that read the canonical store directly."""
        registry = TargetRegistry(
            Path("/p"),
            Path("/home/u"),
            [TargetConfig.standard("codex", ".agents"), TargetConfig.standard("cursor", ".cursor")],
        )

        assert registry.is_universal("codex", "skill")
        assert not registry.is_universal("cursor", "skill")
        assert not registry.is_universal("unknown", "skill")
        assert registry.universal_targets() == ["codex"]

    def test_duplicate_registration(self):
        """Test that registering a target id twice is a ConfigError."""
        registry = TargetRegistry(Path("/p"), Path("/home/u"), [TargetConfig.standard("cursor", ".cursor")])

        with pytest.raises(ConfigError):
            registry.register(TargetConfig.standard("cursor", ".cursor"))
