"""Per-file pin cache persisted as JSON.

The cache is disposable: it only saves re-parsing work and can be cleared
at any time. The org files on disk are always the source of truth.
"""

import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path

from espresso_mcp.indexer.models import CACHE_VERSION, Cache, CacheEntry, Pin

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


def _mtime_ms(path: str | Path) -> float:
    return os.stat(path).st_mtime * 1000


class FileCache:
    """
    Tracks the last-seen modification time and extracted pins per org file.

    An entry is trusted exactly when the file's current mtime is not newer
    than the mtime recorded at parse time.

    Thread Safety:
        Mutations are serialized by a lock so the background sync thread and
        tool handlers can share one instance.
    """

    def __init__(self, cache_path: Path):
        """
        Initialize the cache.

        Args:
            cache_path: Location of the JSON cache file
        """
        self.cache_path = cache_path
        self._cache = Cache(last_updated=_now_ms())
        self._dirty = False
        self._lock = threading.Lock()

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def initialize(self) -> None:
        """Load the cache from disk, falling back to an empty cache."""
        try:
            self._cache = self._load()
            logger.info(
                "File cache initialized with %d entries", len(self._cache.entries)
            )
        except FileNotFoundError:
            logger.info("No existing cache found at %s, starting empty", self.cache_path)
            self._cache = Cache(last_updated=_now_ms())
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Could not load cache %s, starting fresh: %s", self.cache_path, e)
            self._cache = Cache(last_updated=_now_ms())
        self._dirty = False

    def _load(self) -> Cache:
        raw = json.loads(self.cache_path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict) or raw.get("version") != CACHE_VERSION:
            raise ValueError("Invalid cache format or version")
        entries = raw.get("entries")
        if not isinstance(entries, dict):
            raise ValueError("Invalid cache format: missing entries")
        return Cache(
            version=CACHE_VERSION,
            last_updated=raw.get("lastUpdated", 0),
            entries={path: CacheEntry.from_dict(data) for path, data in entries.items()},
        )

    def needs_parsing(self, file_path: str | Path) -> bool:
        """Check whether a file is new or modified since it was last parsed."""
        key = str(file_path)
        try:
            current_mtime = _mtime_ms(key)
        except FileNotFoundError:
            # Vanished files are dropped, not re-parsed
            return False
        except OSError as e:
            logger.debug("Cannot stat %s, treating as stale: %s", key, e)
            return True

        entry = self._cache.entries.get(key)
        if entry is None:
            return True
        return current_mtime > entry.last_modified

    def get_cached_pins(self, file_path: str | Path) -> list[Pin] | None:
        """Return the cached pins for a file, or None if it is not tracked."""
        entry = self._cache.entries.get(str(file_path))
        if entry is None:
            return None
        return list(entry.pins)

    def update_cache(
        self,
        file_path: str | Path,
        pins: list[Pin],
        content_hash: str | None = None,
        mtime: float | None = None,
    ) -> None:
        """
        Store a fresh entry for a file.

        Args:
            file_path: Org file the pins were parsed from
            pins: Pins extracted from the file
            content_hash: Optional hash of the parsed content
            mtime: Modification time (epoch ms) seen before the file was
                read. Defaults to the file's current mtime. A write that
                lands after the read then still looks newer than the entry.
        """
        key = str(file_path)
        if mtime is None:
            try:
                mtime = _mtime_ms(key)
            except OSError as e:
                logger.warning("Failed to update cache for %s: %s", key, e)
                return

        with self._lock:
            self._cache.entries[key] = CacheEntry(
                file_path=key,
                last_modified=mtime,
                last_parsed=_now_ms(),
                pins=list(pins),
                content_hash=content_hash,
            )
            self._dirty = True
        logger.debug("Cache updated for %s with %d pins", key, len(pins))

    def remove_from_cache(self, file_path: str | Path) -> None:
        """Forget a file so it is re-parsed on the next scan."""
        key = str(file_path)
        with self._lock:
            if self._cache.entries.pop(key, None) is not None:
                self._dirty = True
                logger.debug("Removed %s from cache", key)

    def get_stats(self) -> dict:
        """Return total tracked files, total pins, and last update time."""
        entries = list(self._cache.entries.values())
        return {
            "total_files": len(entries),
            "total_pins": sum(len(entry.pins) for entry in entries),
            "last_updated": self._cache.last_updated,
        }

    def save_cache(self) -> None:
        """Write the cache to disk if it changed since the last save."""
        with self._lock:
            if not self._dirty:
                return
            self._cache.last_updated = _now_ms()
            payload = json.dumps(self._cache.to_dict(), indent=2)
            try:
                self._write(payload)
            except OSError as e:
                logger.error("Failed to save file cache to %s: %s", self.cache_path, e)
                return
            self._dirty = False
        logger.debug("File cache saved to %s", self.cache_path)

    def _write(self, payload: str) -> None:
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            delete=False,
            dir=self.cache_path.parent,
            prefix=".cache-",
            encoding="utf-8",
        ) as tmp:
            tmp.write(payload)
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp_path = Path(tmp.name)
        os.replace(tmp_path, self.cache_path)

    def clear_cache(self) -> None:
        """Drop every entry and persist the empty cache."""
        with self._lock:
            self._cache = Cache(last_updated=_now_ms())
            self._dirty = True
        self.save_cache()
        logger.info("File cache cleared")

    def cleanup_cache(self) -> int:
        """
        Drop entries whose files no longer exist.

        Meant for shutdown; scans keep entries of transiently missing files.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            stale = [path for path in self._cache.entries if not os.path.exists(path)]
            for path in stale:
                del self._cache.entries[path]
            if stale:
                self._dirty = True
        if stale:
            logger.info("Cleaned up %d stale cache entries", len(stale))
        return len(stale)
