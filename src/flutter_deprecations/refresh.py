"""Cache refresh: scan the Flutter sources and persist the result.

A refresh is skipped entirely while the cache is younger than the TTL.
Otherwise every source directory is listed and each Dart file fetched and
scanned. Failures for one directory or one file are logged, reported to the
progress callback and skipped; they never abort the refresh. The curated
known patterns are appended last and the whole aggregate replaces the
previous cache.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import structlog

from .cache import DeprecationCacheStore, get_cache
from .config import DEFAULT_TTL_HOURS, SOURCE_PREFIXES, Settings
from .error_handling import FETCH_ERRORS, RateLimitError, RetryPolicy
from .models import Deprecation, DeprecationCache
from .patterns import KNOWN_PATTERNS, KnownPattern, known_deprecations
from .releases import fetch_release_note_deprecations
from .scanner import AnnotationScanner
from .source import DocumentSource, GitHubSource

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[str], None]
ReleaseNotesProvider = Callable[[], Awaitable[List[Deprecation]]]


@dataclass
class RefreshResult:
    """Outcome of a refresh attempt."""

    updated: bool
    total: int
    last_updated: datetime
    scanned_documents: int = 0
    source_deprecations: int = 0
    failed_units: List[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshOrchestrator:
    """Walks the source prefixes, scans documents and saves the aggregate."""

    def __init__(
        self,
        store: DeprecationCacheStore,
        source: DocumentSource,
        scanner: Optional[AnnotationScanner] = None,
        patterns: Tuple[KnownPattern, ...] = KNOWN_PATTERNS,
        prefixes: Sequence[str] = SOURCE_PREFIXES,
        ttl: timedelta = timedelta(hours=DEFAULT_TTL_HOURS),
        max_concurrency: int = 1,
        version_label: str = "",
        release_notes: Optional[ReleaseNotesProvider] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            store: Where the aggregate is loaded from and saved to
            source: Lists and fetches Dart documents
            scanner: Annotation scanner (default: AnnotationScanner())
            patterns: Curated known patterns appended to every refresh
            prefixes: Source directories to walk, in order
            ttl: Cache age below which a refresh is skipped
            max_concurrency: Documents fetched at once within a directory
            version_label: Version stamped on scanned records that carry none
            release_notes: Optional provider of release-note deprecations
            clock: Returns the current aware datetime
        """
        self.store = store
        self.source = source
        self.scanner = scanner or AnnotationScanner()
        self.patterns = tuple(patterns)
        self.prefixes = tuple(prefixes)
        self.ttl = ttl
        self.max_concurrency = max(1, max_concurrency)
        self.version_label = version_label
        self.release_notes = release_notes
        self.clock = clock

    def is_fresh(self, cache: DeprecationCache, now: Optional[datetime] = None) -> bool:
        return cache.age(now or self.clock()) < self.ttl

    async def refresh(self, force: bool = False, progress: Optional[ProgressCallback] = None) -> RefreshResult:
        """Refresh the cache unless it is still fresh.

        Args:
            force: Refresh even if the cache is younger than the TTL
            progress: Optional callback receiving human-readable milestones

        Raises:
            CacheError: If the existing cache cannot be loaded or the new one
                cannot be saved
        """
        cache = self.store.load()
        now = self.clock()

        if not force and self.is_fresh(cache, now):
            logger.info("refresh_skipped", last_updated=cache.last_updated.isoformat(), entries=len(cache))
            self._notify(progress, "Cache is up to date, skipping update")
            return RefreshResult(updated=False, total=len(cache), last_updated=cache.last_updated)

        logger.info("refresh_started", prefixes=len(self.prefixes), forced=force)
        self._notify(progress, "🔍 Scanning Flutter source code for @Deprecated annotations...")

        result = RefreshResult(updated=True, total=0, last_updated=cache.last_updated)
        collected: List[Deprecation] = []

        for position, prefix in enumerate(self.prefixes, start=1):
            self._notify(progress, f"📂 Scanning directory {position}/{len(self.prefixes)}: {prefix}")
            collected.extend(await self._scan_prefix(prefix, progress, result))

        result.source_deprecations = len(collected)
        self._notify(progress, f"✅ Completed scanning {len(self.prefixes)} directories")
        self._notify(progress, f"📊 Found {len(collected)} deprecations from source code")

        if self.release_notes is not None:
            collected.extend(await self._collect_release_notes(progress, result))

        self._notify(progress, "📝 Adding known deprecation patterns...")
        collected.extend(known_deprecations(self.patterns))

        refreshed = DeprecationCache(
            last_updated=max(self.clock(), cache.last_updated),
            deprecations=collected,
        )
        self._notify(progress, f"💾 Saving {len(collected)} total deprecations to cache...")
        self.store.save(refreshed)

        result.total = len(refreshed)
        result.last_updated = refreshed.last_updated
        logger.info(
            "refresh_completed",
            total=result.total,
            scanned_documents=result.scanned_documents,
            failed_units=len(result.failed_units),
        )
        return result

    async def _scan_prefix(
        self,
        prefix: str,
        progress: Optional[ProgressCallback],
        result: RefreshResult,
    ) -> List[Deprecation]:
        try:
            names = await self.source.list_documents(prefix)
        except FETCH_ERRORS as e:
            self._record_failure(prefix, e, progress, result, "directory")
            return []

        if names:
            self._notify(progress, f"  📜 Found {len(names)} Dart files to scan")

        if self.max_concurrency == 1:
            batches = [await self._scan_document(prefix, name, progress, result) for name in names]
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def bounded(name: str) -> List[Deprecation]:
                async with semaphore:
                    return await self._scan_document(prefix, name, progress, result)

            batches = await asyncio.gather(*(bounded(name) for name in names))

        return [deprecation for batch in batches for deprecation in batch]

    async def _scan_document(
        self,
        prefix: str,
        name: str,
        progress: Optional[ProgressCallback],
        result: RefreshResult,
    ) -> List[Deprecation]:
        try:
            lines = await self.source.fetch_document(prefix, name)
        except FETCH_ERRORS as e:
            self._record_failure(f"{prefix}{name}", e, progress, result, "file")
            return []

        result.scanned_documents += 1
        found = self.scanner.scan(lines)
        for deprecation in found:
            if not deprecation.version:
                deprecation.version = self.version_label

        if found:
            self._notify(progress, f"  🔍 Found {len(found)} deprecations in {name}")
        return found

    async def _collect_release_notes(
        self,
        progress: Optional[ProgressCallback],
        result: RefreshResult,
    ) -> List[Deprecation]:
        self._notify(progress, "📰 Checking recent release notes...")
        try:
            notes = await self.release_notes()
        except FETCH_ERRORS as e:
            self._record_failure("release notes", e, progress, result, "release notes")
            return []
        self._notify(progress, f"📰 Found {len(notes)} deprecations in release notes")
        return notes

    def _record_failure(
        self,
        unit: str,
        error: Exception,
        progress: Optional[ProgressCallback],
        result: RefreshResult,
        kind: str,
    ) -> None:
        result.failed_units.append(unit)
        rate_limited = isinstance(error, RateLimitError)
        logger.warning(
            "refresh_unit_failed",
            unit=unit,
            kind=kind,
            rate_limited=rate_limited,
            error=str(error),
            error_type=type(error).__name__,
        )
        if rate_limited:
            self._notify(progress, f"⛔ Rate limited by GitHub while scanning {kind} {unit}")
        else:
            self._notify(progress, f"⚠️ Warning: Failed to scan {kind} {unit}")

    @staticmethod
    def _notify(progress: Optional[ProgressCallback], message: str) -> None:
        if progress is None:
            return
        try:
            progress(message)
        except Exception as e:
            logger.warning("progress_callback_failed", error=str(e), error_type=type(e).__name__)


def create_orchestrator(settings: Settings, store: Optional[DeprecationCacheStore] = None) -> RefreshOrchestrator:
    """Wire an orchestrator from resolved settings."""
    policy = RetryPolicy(max_attempts=settings.max_retries, base_delay=settings.retry_delay)
    release_notes = None
    if settings.include_release_notes:
        async def fetch_notes():
            return await fetch_release_note_deprecations(policy=policy)
        release_notes = fetch_notes

    return RefreshOrchestrator(
        store=store or get_cache(settings.cache_dir, settings.ttl_hours),
        source=GitHubSource(branch=settings.branch, policy=policy),
        ttl=settings.ttl,
        max_concurrency=settings.max_concurrency,
        version_label=f"Flutter {settings.branch}",
        release_notes=release_notes,
    )
