"""TTL caches for cloned repositories and fetched text.

Layout under `<home>/.cache/cognit/`:

    clones/<key>             cloned tree
    clones/<key>.meta.json   metadata sidecar
    fetch/<key>.content      fetched text
    fetch/<key>.meta.json    metadata sidecar

Keys are the first 16 hex characters of a SHA-256 of the normalized
source. Cache maintenance never fails the caller: invalidation and clearing
are best-effort.
"""

import errno
import hashlib
import json
import logging
import time
from collections.abc import Awaitable
from collections.abc import Callable
from pathlib import Path

import httpx
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from .events import CachePayload
from .events import NullEventBus
from .exceptions import FetchError
from .fileops import atomic_write
from .protocols import EventEmitter
from .protocols import FetcherProtocol
from .protocols import FetchResponse
from .protocols import FileSystemProtocol
from .protocols import GitClientProtocol
from .retry import with_retry

logger = logging.getLogger(__name__)

DEFAULT_CLONE_TTL_MS = 3_600_000
DEFAULT_FETCH_TTL_MS = 900_000
KEY_LENGTH = 16


class CacheMeta(BaseModel):
    """Metadata sidecar of one cached artifact."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    created_at: float
    ttl_ms: int
    etag: str | None = None

    def is_fresh(self, now_ms: float, ttl_ms: int | None = None) -> bool:
        return now_ms - self.created_at < (self.ttl_ms if ttl_ms is None else ttl_ms)


def _now_ms() -> float:
    return time.time() * 1000


def cache_key(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:KEY_LENGTH]


class _TtlCache:
    """Shared sidecar handling for the clone and fetch caches."""

    kind = ""

    def __init__(
        self,
        fs: FileSystemProtocol,
        cache_dir: Path,
        ttl_ms: int,
        clock: Callable[[], float] | None = None,
        events: EventEmitter | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        self.fs = fs
        self.cache_dir = cache_dir
        self.ttl_ms = ttl_ms
        self.clock = clock or _now_ms
        self.events = events or NullEventBus()
        self._retry_kwargs = {"sleep": sleep} if sleep is not None else {}

    def meta_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.meta.json"

    async def _read_meta(self, key: str) -> CacheMeta | None:
        try:
            raw = await self.fs.read_text(self.meta_path(key))
            return CacheMeta.model_validate(json.loads(raw))
        except (OSError, ValueError, ValidationError):
            return None

    async def _write_meta(self, key: str, etag: str | None = None, ttl_ms: int | None = None) -> None:
        meta = CacheMeta(created_at=self.clock(), ttl_ms=self.ttl_ms if ttl_ms is None else ttl_ms, etag=etag)
        await atomic_write(self.meta_path(key), meta.model_dump_json(by_alias=True, exclude_none=True), self.fs)

    async def _remove_key(self, key: str, artifact: Path) -> None:
        for path in (self.meta_path(key), artifact):
            try:
                await self.fs.remove(path, recursive=True)
            except OSError as e:
                logger.debug(f"Could not remove cache entry {path}: {e}")

    def _emit(self, event: str, key: str, url: str) -> None:
        self.events.emit(event, CachePayload(kind=self.kind, key=key, url=url))

    async def clear(self) -> None:
        """Drop the whole cache namespace (best-effort)."""
        try:
            await self.fs.remove(self.cache_dir, recursive=True)
        except OSError as e:
            logger.debug(f"Could not clear {self.cache_dir}: {e}")


class CloneCache(_TtlCache):
    """Cache of cloned repositories, keyed by (url, ref)."""

    kind = "clone"

    def __init__(
        self,
        fs: FileSystemProtocol,
        home: Path,
        ttl_ms: int = DEFAULT_CLONE_TTL_MS,
        clock: Callable[[], float] | None = None,
        events: EventEmitter | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        super().__init__(fs, Path(home) / ".cache" / "cognit" / "clones", ttl_ms, clock, events, sleep)

    @staticmethod
    def key_for(url: str, ref: str | None = None) -> str:
        return cache_key(f"{url.removesuffix('.git')}#{ref or 'HEAD'}")

    async def get_or_clone(self, url: str, ref: str | None, git: GitClientProtocol) -> Path:
        """
        Return a checkout of `url` at `ref`, cloning only on a miss or after expiry.

        Args:
            url: Repository URL (a trailing `.git` does not change the key)
            ref: Branch, tag or commit; None means HEAD
            git: Clone collaborator

        Returns:
            Path of the cached checkout
        """
        key = self.key_for(url, ref)
        cache_path = self.cache_dir / key

        meta = await self._read_meta(key)
        if meta is not None and meta.is_fresh(self.clock()) and await self.fs.exists(cache_path):
            logger.debug(f"Clone cache hit for {url}@{ref or 'HEAD'}")
            self._emit("cache:hit", key, url)
            return cache_path

        self._emit("cache:miss", key, url)
        checkout = await with_retry(lambda attempt: git.clone(url, ref), **self._retry_kwargs)

        await self.fs.mkdir(self.cache_dir)
        await self.fs.remove(cache_path, recursive=True)
        try:
            await self.fs.rename(checkout, cache_path)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            await self.fs.copy_directory(checkout, cache_path)
            await git.cleanup(checkout)

        await self._write_meta(key)
        logger.info(f"Cached clone of {url}@{ref or 'HEAD'} at {cache_path}")
        return cache_path

    async def invalidate(self, url: str, ref: str | None = None) -> None:
        key = self.key_for(url, ref)
        await self._remove_key(key, self.cache_dir / key)


class FetchCache(_TtlCache):
    """Cache of fetched text resources, keyed by URL."""

    kind = "fetch"

    def __init__(
        self,
        fs: FileSystemProtocol,
        home: Path,
        fetcher: FetcherProtocol | None = None,
        ttl_ms: int = DEFAULT_FETCH_TTL_MS,
        clock: Callable[[], float] | None = None,
        events: EventEmitter | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        super().__init__(fs, Path(home) / ".cache" / "cognit" / "fetch", ttl_ms, clock, events, sleep)
        self.fetcher = fetcher or HttpFetcher()

    @staticmethod
    def key_for(url: str) -> str:
        return cache_key(url)

    def content_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.content"

    async def get_or_fetch(self, url: str, ttl_ms: int | None = None) -> str:
        """
        Return the text at `url`, fetching only on a miss or after expiry.

        Args:
            url: Resource URL
            ttl_ms: Freshness window for this call (defaults to the value
                recorded with the cached artifact)
        """
        key = self.key_for(url)

        meta = await self._read_meta(key)
        if meta is not None and meta.is_fresh(self.clock(), ttl_ms):
            try:
                content = await self.fs.read_text(self.content_path(key))
            except OSError:
                logger.debug(f"Fetch cache metadata without content for {url}")
            else:
                self._emit("cache:hit", key, url)
                return content

        self._emit("cache:miss", key, url)
        response = await with_retry(lambda attempt: self.fetcher.fetch(url), **self._retry_kwargs)

        await atomic_write(self.content_path(key), response.content, self.fs)
        await self._write_meta(key, etag=response.etag, ttl_ms=ttl_ms)
        logger.debug(f"Cached {url} ({len(response.content)} chars)")
        return response.content

    async def invalidate(self, url: str) -> None:
        key = self.key_for(url)
        await self._remove_key(key, self.content_path(key))


class HttpFetcher:
    """FetcherProtocol implementation on httpx."""

    def __init__(
        self,
        timeout: float = 15.0,
        user_agent: str = "agent-sync",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport

    async def fetch(self, url: str) -> FetchResponse:
        """
        Raises:
            FetchError: On a non-success HTTP status
            httpx.TransportError: On network failure (retryable)
        """
        async with httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=True, transport=self.transport
        ) as client:
            response = await client.get(url, headers={"User-Agent": self.user_agent})
        if response.is_error:
            raise FetchError(url, response.status_code)
        return FetchResponse(content=response.text, etag=response.headers.get("etag"))
