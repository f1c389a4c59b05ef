"""Tests for content and directory hashing."""

import hashlib
from pathlib import Path

import pytest
from agent_sync import MemoryFileSystem
from agent_sync import content_hash
from agent_sync import directory_hash
from agent_sync import verify_content_hash
from agent_sync import verify_directory_hash


def test_content_hash():
    """Verify content hash is SHA-256 of the UTF-8 bytes."""
    assert content_hash("hello") == hashlib.sha256(b"hello").hexdigest()
    assert content_hash(b"hello") == content_hash("hello")


@pytest.mark.asyncio
async def test_verify_content_hash():
    """Test file verification, including a missing file reading as False."""
    fs = MemoryFileSystem.from_files({"/x/SKILL.md": "body"})

    assert await verify_content_hash(Path("/x/SKILL.md"), content_hash("body"), fs)
    assert not await verify_content_hash(Path("/x/SKILL.md"), content_hash("other"), fs)
    assert not await verify_content_hash(Path("/x/missing.md"), content_hash("body"), fs)


@pytest.mark.asyncio
async def test_directory_hash_ignores_enumeration_order():
    """Test that directory hashes do not depend on listing order."""
    first = MemoryFileSystem.from_files({"/d/a.md": "A", "/d/b.md": "B"})
    second = MemoryFileSystem.from_files({"/d/b.md": "B", "/d/a.md": "A"})

    assert await directory_hash(Path("/d"), first) == await directory_hash(Path("/d"), second)


@pytest.mark.asyncio
async def test_directory_hash_covers_names_and_content():
    """Test that renaming or editing a file changes the directory hash."""
    base = await directory_hash(Path("/d"), MemoryFileSystem.from_files({"/d/a.md": "A"}))

    assert base != await directory_hash(Path("/d"), MemoryFileSystem.from_files({"/d/a.md": "changed"}))
    assert base != await directory_hash(Path("/d"), MemoryFileSystem.from_files({"/d/renamed.md": "A"}))


@pytest.mark.asyncio
async def test_directory_hash_only_immediate_files():
    """Test that subdirectories do not affect the directory hash."""
    flat = MemoryFileSystem.from_files({"/d/a.md": "A"})
    nested = MemoryFileSystem.from_files({"/d/a.md": "A", "/d/sub/b.md": "B"})

    assert await directory_hash(Path("/d"), flat) == await directory_hash(Path("/d"), nested)


@pytest.mark.asyncio
async def test_verify_directory_hash():
    """Test directory verification, including a missing directory reading as False."""
    fs = MemoryFileSystem.from_files({"/d/a.md": "A"})
    expected = await directory_hash(Path("/d"), fs)

    assert await verify_directory_hash(Path("/d"), expected, fs)
    assert not await verify_directory_hash(Path("/d"), "0" * 64, fs)
    assert not await verify_directory_hash(Path("/missing"), expected, fs)


@pytest.mark.asyncio
async def test_non_utf8_file_is_hashed_as_bytes():
    """Test that a non-UTF-8 file is hashed as bytes."""
    image = b"\x89PNG\xff\xfe"
    fs = MemoryFileSystem.from_files({"/d/SKILL.md": "body", "/d/logo.png": image})

    assert await verify_content_hash(Path("/d/logo.png"), content_hash(image), fs)
    assert not await verify_content_hash(Path("/d/logo.png"), content_hash("body"), fs)

    expected = await directory_hash(Path("/d"), fs)
    assert await verify_directory_hash(Path("/d"), expected, fs)


@pytest.mark.asyncio
async def test_text_hash_matches_its_utf8_bytes():
    """Verify text and its UTF-8 bytes give the same directory hash."""
    text = MemoryFileSystem.from_files({"/d/a.md": "café"})
    raw = MemoryFileSystem.from_files({"/d/a.md": "café".encode("utf-8")})

    assert await directory_hash(Path("/d"), text) == await directory_hash(Path("/d"), raw)
