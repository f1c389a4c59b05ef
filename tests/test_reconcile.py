"""Tests for check/sync drift detection."""

from pathlib import Path

import pytest
from agent_sync import CapturingEventBus
from agent_sync import LockManager
from agent_sync import MemoryFileSystem
from agent_sync import OperationError
from agent_sync import PathTraversalError
from agent_sync import Reconciler
from agent_sync import directory_hash

PROJECT = Path("/proj")
STORE = PROJECT / ".agents" / "cognit"


class EscapingReconciler(Reconciler):
    """Reconciler whose path derivation rejects the entry named `alpha`."""

    def canonical_dir(self, name, entry):
        if name == "alpha":
            raise PathTraversalError(PROJECT / ".." / name)
        return super().canonical_dir(name, entry)


async def setup_store(files: dict[str, str | bytes], entries: dict[str, str | None]):
    """Seed a store and lock file; `entries` maps lock name to the dir its hash is taken from."""
    fs = MemoryFileSystem.from_files({str(STORE / path): content for path, content in files.items()})
    lock = LockManager.for_project(PROJECT, fs=fs)
    for name, hashed_dir in entries.items():
        digest = await directory_hash(STORE / hashed_dir, fs) if hashed_dir else "missing"
        await lock.add_entry(
            name, source="owner/repo", source_type="github", cognitive_type="skill", content_hash=digest
        )
    return fs, lock


class TestCheck:
    @pytest.mark.asyncio
    async def test_healthy(self):
        """Test a healthy store reports every entry and emits operation events."""
        fs, lock = await setup_store(
            {"skills/general/alpha/SKILL.md": "a", "skills/general/beta/SKILL.md": "b"},
            {"alpha": "skills/general/alpha", "beta": "skills/general/beta"},
        )
        events = CapturingEventBus()

        result = await Reconciler(lock, fs, PROJECT, events).check()

        assert result.success
        assert result.healthy == ["alpha", "beta"]
        assert result.issues == []
        assert result.message == "All 2 cognitive(s) are healthy"
        assert [name for name, _ in events.events] == ["operation:start", "operation:complete"]

    @pytest.mark.asyncio
    async def test_reports_missing_and_mismatched(self):
        """Test missing and edited units are reported with their severities."""
        fs, lock = await setup_store(
            {"skills/general/alpha/SKILL.md": "a", "skills/general/beta/SKILL.md": "b"},
            {"alpha": "skills/general/alpha", "beta": "skills/general/beta", "gone": None},
        )
        await fs.write_text(STORE / "skills/general/beta/SKILL.md", "edited by hand")

        result = await Reconciler(lock, fs, PROJECT).check()

        assert not result.success
        assert result.healthy == ["alpha"]
        by_name = {issue.name: issue for issue in result.issues}
        assert (by_name["beta"].type, by_name["beta"].severity) == ("hash_mismatch", "warning")
        assert (by_name["gone"].type, by_name["gone"].severity) == ("missing_canonical", "error")
        assert result.message == "1 healthy, 1 error(s), 1 warning(s)"

    @pytest.mark.asyncio
    async def test_uses_entry_category(self):
        """Test that the entry's category selects the store directory."""
        fs, lock = await setup_store({"skills/frontend/alpha/SKILL.md": "a"}, {})
        digest = await directory_hash(STORE / "skills/frontend/alpha", fs)
        await lock.add_entry(
            "alpha",
            source="o/r",
            source_type="github",
            cognitive_type="skill",
            content_hash=digest,
            category="frontend",
        )

        result = await Reconciler(lock, fs, PROJECT).check()

        assert result.healthy == ["alpha"]

    @pytest.mark.asyncio
    async def test_category_is_sanitized_like_the_installer(self):
        """Test that a free-form category resolves to its kebab-case directory."""
        fs, lock = await setup_store({"skills/web-dev/alpha/SKILL.md": "a"}, {})
        digest = await directory_hash(STORE / "skills/web-dev/alpha", fs)
        await lock.add_entry(
            "alpha",
            source="o/r",
            source_type="github",
            cognitive_type="skill",
            content_hash=digest,
            category="Web Dev",
        )

        result = await Reconciler(lock, fs, PROJECT).check()

        assert result.healthy == ["alpha"]

    @pytest.mark.asyncio
    async def test_traversal_category_stays_inside_the_store(self):
        """Test that a traversal category never reads outside the store."""
        fs = MemoryFileSystem.from_files({"/proj/alpha/SKILL.md": "outside"})
        digest = await directory_hash(Path("/proj/alpha"), fs)
        lock = LockManager.for_project(PROJECT, fs=fs)
        await lock.add_entry(
            "alpha",
            source="o/r",
            source_type="github",
            cognitive_type="skill",
            content_hash=digest,
            category="../../..",
        )

        result = await Reconciler(lock, fs, PROJECT).check()

        assert result.healthy == []
        assert result.issues[0].type == "missing_canonical"
        assert str(STORE / "skills" / "unnamed-cognitive" / "alpha") in result.issues[0].description

    @pytest.mark.asyncio
    async def test_unsafe_canonical_path_is_an_issue(self):
        """Test that an escaping canonical path is reported as an issue."""
        fs, lock = await setup_store(
            {"skills/general/beta/SKILL.md": "b"}, {"alpha": None, "beta": "skills/general/beta"}
        )

        result = await EscapingReconciler(lock, fs, PROJECT).check()

        assert result.healthy == ["beta"]
        assert [(issue.name, issue.type) for issue in result.issues] == [("alpha", "missing_canonical")]
        assert "escapes the store" in result.issues[0].description

    @pytest.mark.asyncio
    async def test_binary_asset_checked_alongside_healthy_entry(self):
        """Test that a unit with a non-UTF-8 file is checked like any other."""
        fs, lock = await setup_store(
            {
                "skills/general/alpha/SKILL.md": "a",
                "skills/general/logo/SKILL.md": "l",
                "skills/general/logo/logo.png": b"\x89PNG\xff\xfe",
            },
            {"alpha": "skills/general/alpha", "logo": "skills/general/logo"},
        )

        healthy = await Reconciler(lock, fs, PROJECT).check()
        await fs.write_bytes(STORE / "skills/general/logo/logo.png", b"\x89PNG\x00\x00")
        drifted = await Reconciler(lock, fs, PROJECT).sync()

        assert healthy.healthy == ["alpha", "logo"]
        assert [(issue.name, issue.type) for issue in drifted.issues] == [("logo", "lock_mismatch")]

    @pytest.mark.asyncio
    async def test_empty_lock(self):
        """Test that an empty lock file is healthy."""
        fs, lock = await setup_store({}, {})

        result = await Reconciler(lock, fs, PROJECT).check()

        assert result.success
        assert result.message == "All 0 cognitive(s) are healthy"


class TestSync:
    @pytest.mark.asyncio
    async def test_dry_run_reports_without_fixing(self):
        """Test that a dry run reports issues without fixing them."""
        fs, lock = await setup_store({}, {"gone": None})

        result = await Reconciler(lock, fs, PROJECT).sync(dry_run=True)

        assert len(result.issues) == 1
        assert result.issues[0].type == "missing_files"
        assert result.issues[0].fixed is False
        assert (result.fixed, result.remaining) == (0, 1)
        assert not result.success
        assert result.message == "Found 1 issue(s) (dry run, no changes applied)"

    @pytest.mark.asyncio
    async def test_confirmed_marks_fixed(self):
        """Test that a confirmed sync without a repairer marks issues fixed."""
        fs, lock = await setup_store({}, {"gone": None})

        result = await Reconciler(lock, fs, PROJECT).sync(confirmed=True)

        assert (result.fixed, result.remaining) == (1, 0)
        assert result.success
        assert result.message == "1 issue(s) fixed"

    @pytest.mark.asyncio
    async def test_dry_run_wins_over_confirmed(self):
        """Test that dry run takes precedence over confirmation."""
        fs, lock = await setup_store({}, {"gone": None})

        result = await Reconciler(lock, fs, PROJECT).sync(dry_run=True, confirmed=True)

        assert result.fixed == 0

    @pytest.mark.asyncio
    async def test_unconfirmed_leaves_issues_remaining(self):
        """Test that an unconfirmed sync leaves drift remaining."""
        fs, lock = await setup_store({"skills/general/beta/SKILL.md": "b"}, {"beta": "skills/general/beta"})
        await fs.write_text(STORE / "skills/general/beta/SKILL.md", "drifted")

        result = await Reconciler(lock, fs, PROJECT).sync()

        assert [issue.type for issue in result.issues] == ["lock_mismatch"]
        assert result.message == "1 issue(s) remaining"

    @pytest.mark.asyncio
    async def test_repairer_decides_outcome(self):
        """Test that the repairer's answer, or its failure, decides each issue."""
        fs, lock = await setup_store({}, {"fixable": None, "broken": None, "crashing": None})
        calls = []

        async def repairer(name, entry, issue_type):
            calls.append((name, issue_type))
            if name == "crashing":
                raise RuntimeError("network down")
            return name == "fixable"

        result = await Reconciler(lock, fs, PROJECT, repairer=repairer).sync(confirmed=True)

        assert {issue.name: issue.fixed for issue in result.issues} == {
            "fixable": True,
            "broken": False,
            "crashing": False,
        }
        assert (result.fixed, result.remaining) == (1, 2)
        assert result.message == "1 issue(s) fixed, 2 issue(s) remaining"
        assert ("fixable", "missing_files") in calls

    @pytest.mark.asyncio
    async def test_in_sync(self):
        """Test that a store matching its lock file has nothing to sync."""
        fs, lock = await setup_store({"skills/general/alpha/SKILL.md": "a"}, {"alpha": "skills/general/alpha"})

        result = await Reconciler(lock, fs, PROJECT).sync(confirmed=True)

        assert result.success
        assert result.issues == []
        assert result.message == "All cognitives are in sync"


class BrokenLockManager(LockManager):
    async def get_all_entries(self):
        raise RuntimeError("ledger unavailable")


@pytest.mark.asyncio
async def test_unexpected_failure_raises_operation_error():
    """Test that a broken ledger raises OperationError after operation:error."""
    events = CapturingEventBus()
    fs = MemoryFileSystem()
    reconciler = Reconciler(BrokenLockManager(STORE / "cognit-lock.json", fs=fs), fs, PROJECT, events)

    with pytest.raises(OperationError):
        await reconciler.sync()

    assert events.of("operation:error")[0]["operation"] == "sync"
    assert events.of("operation:complete") == []
