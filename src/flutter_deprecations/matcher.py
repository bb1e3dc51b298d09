"""Match code snippets against known and cached deprecations."""

from typing import List, Tuple

import structlog

from .cache import DeprecationCacheStore
from .error_handling import CacheError
from .models import Deprecation
from .patterns import KNOWN_PATTERNS, KnownPattern

logger = structlog.get_logger(__name__)


class CodeMatcher:
    """Finds deprecated API usages in a snippet.

    Two independent passes run over the snippet: the curated pattern regexes,
    then a plain substring check for every cached API name. Results from both
    passes are concatenated, so the same API can be reported more than once
    unless ``dedupe`` is requested.
    """

    def __init__(self, store: DeprecationCacheStore, patterns: Tuple[KnownPattern, ...] = KNOWN_PATTERNS):
        self.store = store
        self.patterns = tuple(patterns)

    def check(self, code: str, dedupe: bool = False) -> List[Deprecation]:
        found = [pattern.to_deprecation() for pattern in self.patterns if pattern.matches(code)]
        found.extend(self._match_cached(code))

        if dedupe:
            return dedupe_by_api(found)
        return found

    def _match_cached(self, code: str) -> List[Deprecation]:
        try:
            cache = self.store.load()
        except CacheError as e:
            logger.warning("matcher_cache_unavailable", error=str(e))
            return []
        return [dep for dep in cache.deprecations if dep.api and dep.api in code]


def dedupe_by_api(deprecations: List[Deprecation]) -> List[Deprecation]:
    """Keep the first record for each API name, preserving order."""
    seen = set()
    unique = []
    for deprecation in deprecations:
        if deprecation.api in seen:
            continue
        seen.add(deprecation.api)
        unique.append(deprecation)
    return unique
