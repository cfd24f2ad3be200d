"""
Content-addressed parse cache for flashdoc.

Uses diskcache for SQLite-based persistent caching; diskcache is safe for
concurrent readers and writers across threads and processes.

An entry is keyed by (file path, parse configuration fingerprint) and
holds the serialized SourceUnit together with the content hash it was
derived from. A lookup whose content hash differs from the stored one
evicts the entry and misses, so a stale unit is never returned.
"""

import hashlib
import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from diskcache import Cache

from .config import CACHE_SCHEMA_VERSION
from .exceptions import CacheCorruptionError, Diagnostic, ErrorCode
from .logging_config import get_logger
from .scanning.models import SourceUnit

logger = get_logger(__name__)


class CacheStorage(Protocol):
    """Byte-level storage boundary."""

    def get(self, key: str) -> Optional[bytes]: ...

    def put(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def close(self) -> None: ...


class DiskCacheStorage:
    """CacheStorage backed by a diskcache.Cache directory."""

    def __init__(self, directory: str):
        self.directory = directory
        self.cache = Cache(directory)

    def get(self, key: str) -> Optional[bytes]:
        return self.cache.get(key)

    def put(self, key: str, value: bytes) -> None:
        self.cache.set(key, value)

    def delete(self, key: str) -> None:
        self.cache.delete(key)

    def clear(self) -> None:
        self.cache.clear()

    def close(self) -> None:
        self.cache.close()

    def __len__(self) -> int:
        return len(self.cache)

    def volume(self) -> int:
        return self.cache.volume()


@dataclass(frozen=True)
class FileKey:
    """Identity of one file's parse under one configuration."""

    path: str
    content_hash: str
    fingerprint: str

    @property
    def storage_key(self) -> str:
        """Storage key: the content hash is checked against the value, not keyed."""
        key_data = f"{self.path}\0{self.fingerprint}"
        return hashlib.sha256(key_data.encode()).hexdigest()


@dataclass(frozen=True)
class CachedResult:
    unit: SourceUnit


class DocCache:
    """
    Parse cache in front of the AST adapter.

    ``lookup`` returns a CachedResult or None (a miss). Corrupt entries
    and storage failures are never fatal: they are logged, counted and
    reported as misses.
    """

    def __init__(self, storage: Optional[CacheStorage], enabled: bool = True):
        """
        Initialize cache.

        Args:
            storage: Byte storage; None disables caching
            enabled: Whether caching is enabled
        """
        self.enabled = enabled and storage is not None
        self.storage = storage if self.enabled else None
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.invalidations = 0
        self.storage_errors = 0
        self.corrupted: list[str] = []

    @classmethod
    def open(cls, cache_dir: str, enabled: bool = True) -> "DocCache":
        if not enabled:
            logger.debug("Cache disabled")
            return cls(None, enabled=False)
        Path(cache_dir).mkdir(parents=True, exist_ok=True)
        logger.debug(f"Cache initialized at {cache_dir}")
        return cls(DiskCacheStorage(cache_dir))

    @property
    def corruptions(self) -> int:
        return len(self.corrupted)

    def lookup(self, key: FileKey) -> Optional[CachedResult]:
        """
        Get the cached unit for a file.

        Args:
            key: File identity, including its current content hash

        Returns:
            CachedResult on a valid hit, None otherwise
        """
        if not self.enabled or self.storage is None:
            return None

        storage_key = key.storage_key
        try:
            raw = self.storage.get(storage_key)
        except Exception as e:
            self._count("storage_errors")
            logger.warning(f"Cache get failed: {e}")
            return None

        if raw is None:
            self._count("misses")
            return None

        try:
            content_hash, unit = self._decode(storage_key, raw)
        except CacheCorruptionError as e:
            logger.warning(f"{e}; evicting entry for {key.path}")
            with self._lock:
                self.corrupted.append(key.path)
                self.misses += 1
            self._evict(storage_key)
            return None

        if content_hash != key.content_hash or unit is None:
            logger.debug(f"Cache stale: {key.path}")
            with self._lock:
                self.invalidations += 1
                self.misses += 1
            self._evict(storage_key)
            return None

        self._count("hits")
        logger.debug(f"Cache hit: {key.path}")
        return CachedResult(unit)

    def store(self, key: FileKey, unit: SourceUnit) -> None:
        """
        Store a fully adapted unit.

        Args:
            key: File identity the unit was derived from
            unit: Complete SourceUnit; partial results are never stored
        """
        if not self.enabled or self.storage is None:
            return

        payload = {
            "schema": CACHE_SCHEMA_VERSION,
            "content_hash": key.content_hash,
            "unit": unit.to_json(),
        }
        try:
            self.storage.put(key.storage_key, json.dumps(payload, sort_keys=True).encode())
            logger.debug(f"Cache set: {key.path}")
        except Exception as e:
            self._count("storage_errors")
            logger.warning(f"Cache set failed: {e}")

    def clear(self) -> None:
        """Clear all cache entries."""
        if not self.enabled or self.storage is None:
            return

        try:
            self.storage.clear()
            logger.info("Cache cleared")
        except Exception as e:
            logger.warning(f"Cache clear failed: {e}")

    def stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache stats
        """
        if not self.enabled:
            return {"enabled": False}
        return {
            "enabled": True,
            "hits": self.hits,
            "misses": self.misses,
            "invalidations": self.invalidations,
            "corruptions": self.corruptions,
            "storage_errors": self.storage_errors,
        }

    def reset_stats(self) -> None:
        """Zero the counters; a builder calls this at the start of each run."""
        with self._lock:
            self.hits = self.misses = self.invalidations = self.storage_errors = 0
            self.corrupted = []

    def diagnostics(self) -> list[Diagnostic]:
        """FD400 per evicted corrupt entry, one FD401 if storage ever failed."""
        with self._lock:
            corrupted = list(self.corrupted)
            storage_errors = self.storage_errors
        found = [
            Diagnostic(ErrorCode.FD400, "corrupt cache entry evicted", path=path)
            for path in corrupted
        ]
        if storage_errors:
            found.append(
                Diagnostic(ErrorCode.FD401, f"cache storage failed {storage_errors} time(s)")
            )
        return found

    def close(self) -> None:
        """Close cache (cleanup)."""
        if self.storage is not None:
            self.storage.close()

    def _decode(self, storage_key: str, raw: Any) -> tuple[str, Optional[SourceUnit]]:
        try:
            payload = json.loads(bytes(raw).decode("utf-8"))
            if payload["schema"] != CACHE_SCHEMA_VERSION:
                # older layout: not corrupt, just unusable
                return payload.get("content_hash", ""), None
            return payload["content_hash"], SourceUnit.from_json(payload["unit"])
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise CacheCorruptionError(storage_key, f"{type(e).__name__}: {e}")

    def _evict(self, storage_key: str) -> None:
        try:
            if self.storage is not None:
                self.storage.delete(storage_key)
        except Exception as e:
            self._count("storage_errors")
            logger.warning(f"Cache delete failed: {e}")

    def _count(self, counter: str) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + 1)
