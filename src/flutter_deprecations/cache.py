"""JSON file cache for the Flutter deprecations aggregate."""

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

import structlog
from platformdirs import user_cache_dir

from .config import APP_NAME, CACHE_FILE, DEFAULT_TTL_HOURS
from .error_handling import CacheError
from .models import DeprecationCache, EPOCH

logger = structlog.get_logger(__name__)


class DeprecationCacheStore:
    """Loads, saves and clears the persisted deprecation cache.

    Writes go to a temporary file in the cache directory which is then
    renamed over the cache file, so readers never see a partial write.
    """

    def __init__(
        self,
        cache_dir: Optional[str] = None,
        filename: str = CACHE_FILE,
        ttl_hours: float = DEFAULT_TTL_HOURS,
    ):
        """Initialize the cache store.

        Args:
            cache_dir: Directory holding the cache file (default: platform cache dir,
                or $CACHE_DIR when set)
            filename: Name of the cache file
            ttl_hours: Age after which the cache is reported as stale
        """
        directory = cache_dir or os.environ.get("CACHE_DIR") or user_cache_dir(APP_NAME, APP_NAME)
        self.cache_dir = Path(directory)
        self.cache_path = self.cache_dir / filename
        self.ttl_hours = ttl_hours

    def load(self) -> DeprecationCache:
        """Load the cache from disk.

        Returns:
            The persisted cache, or an empty cache if nothing is persisted
            or the persisted content cannot be parsed

        Raises:
            CacheError: If an existing cache file cannot be read
        """
        if not self.cache_path.exists():
            return DeprecationCache.empty()

        try:
            raw = self.cache_path.read_bytes()
        except OSError as e:
            raise CacheError(f"Failed to read cache file {self.cache_path}: {e}") from e

        try:
            return DeprecationCache.from_dict(json.loads(raw.decode("utf-8")))
        except (ValueError, TypeError) as e:
            logger.warning("cache_parse_failed", path=str(self.cache_path), error=str(e))
            return DeprecationCache.empty()

    def save(self, cache: DeprecationCache) -> None:
        """Persist the full cache atomically.

        Raises:
            CacheError: If the cache directory or file cannot be written
        """
        try:
            data = json.dumps(cache.to_dict(), indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Failed to serialize cache: {e}") from e

        tmp_name = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=str(self.cache_dir),
                prefix=f".{self.cache_path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.cache_path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheError(f"Failed to write cache file {self.cache_path}: {e}") from e

        logger.debug("cache_saved", path=str(self.cache_path), entries=len(cache))

    def clear(self) -> None:
        """Delete the persisted cache; a missing file is not an error.

        Raises:
            CacheError: If the file exists but cannot be removed
        """
        try:
            self.cache_path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise CacheError(f"Failed to clear cache file {self.cache_path}: {e}") from e
        logger.info("cache_cleared", path=str(self.cache_path))

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        cache = self.load()
        now = datetime.now(timezone.utc)
        never_updated = cache.last_updated == EPOCH
        age_hours = None if never_updated else round(cache.age(now).total_seconds() / 3600, 2)

        return {
            "total_entries": len(cache),
            "last_updated": None if never_updated else cache.last_updated.isoformat(),
            "age_hours": age_hours,
            "is_stale": never_updated or age_hours >= self.ttl_hours,
            "file_size_bytes": self.cache_path.stat().st_size if self.cache_path.exists() else 0,
            "cache_path": str(self.cache_path),
        }


# Global cache instance
_cache_instance: Optional[DeprecationCacheStore] = None


def get_cache(cache_dir: Optional[str] = None, ttl_hours: float = DEFAULT_TTL_HOURS) -> DeprecationCacheStore:
    """Get or create the global cache store."""
    global _cache_instance
    if _cache_instance is None:
        _cache_instance = DeprecationCacheStore(cache_dir=cache_dir, ttl_hours=ttl_hours)
    return _cache_instance
