#!/usr/bin/env python3
"""Test cases for the cache refresh orchestrator."""

import asyncio
import json
from datetime import timedelta
from unittest.mock import Mock

import httpx
import pytest

from flutter_deprecations.config import Settings
from flutter_deprecations.error_handling import CacheError, NetworkError, RateLimitError
from flutter_deprecations.models import Deprecation, DeprecationCache
from flutter_deprecations.patterns import KNOWN_PATTERN_VERSION, KNOWN_PATTERNS
from flutter_deprecations.refresh import RefreshOrchestrator, create_orchestrator
from flutter_deprecations.source import GitHubSource

from conftest import FAST_RETRY, NOW

WIDGETS_DOC = [
    "class Foo extends StatelessWidget {",
    "  @Deprecated('Use bar instead. This feature was deprecated after v3.10.0.')",
    "  void baz() {}",
    "",
    "  @Deprecated('Use qux instead')",
    "  int get quux => 1;",
    "}",
]

MATERIAL_DOC = [
    "class ThemeData {",
    "  @Deprecated('Use colorScheme.secondary instead')",
    "  final Color accentColor;",
    "}",
]


class FakeSource:
    """In-memory document source that records every call."""

    def __init__(self, documents, failures=None):
        self.documents = documents
        self.failures = failures or {}
        self.calls = []

    async def list_documents(self, prefix):
        self.calls.append(("list", prefix))
        if prefix in self.failures:
            raise self.failures[prefix]
        return list(self.documents.get(prefix, {}))

    async def fetch_document(self, prefix, name):
        self.calls.append(("fetch", prefix + name))
        if prefix + name in self.failures:
            raise self.failures[prefix + name]
        return self.documents[prefix][name]


def make_source(failures=None):
    return FakeSource(
        {
            "widgets/": {"foo.dart": WIDGETS_DOC, "empty.dart": []},
            "material/": {"theme_data.dart": MATERIAL_DOC},
        },
        failures=failures,
    )


def make_orchestrator(store, source, clock_value=NOW, **kwargs):
    kwargs.setdefault("prefixes", ("widgets/", "material/"))
    kwargs.setdefault("version_label", "Flutter master")
    return RefreshOrchestrator(store=store, source=source, clock=lambda: clock_value, **kwargs)


class TestRefresh:
    """Test a full refresh pass."""

    def test_refresh_empty_cache(self, store):
        source = make_source()
        result = asyncio.run(make_orchestrator(store, source).refresh())

        assert result.updated is True
        assert result.scanned_documents == 3
        assert result.source_deprecations == 3
        assert result.total == 3 + len(KNOWN_PATTERNS)
        assert result.failed_units == []
        assert result.last_updated == NOW

        cache = store.load()
        assert [dep.api for dep in cache.deprecations[:3]] == ["Foo.baz", "Foo.quux", "ThemeData.accentColor"]
        assert cache.last_updated == NOW

    def test_known_patterns_appended_last(self, store):
        asyncio.run(make_orchestrator(store, make_source()).refresh())

        tail = store.load().deprecations[-len(KNOWN_PATTERNS):]
        assert [dep.api for dep in tail] == [pattern.api for pattern in KNOWN_PATTERNS]
        assert all(dep.version == KNOWN_PATTERN_VERSION for dep in tail)

    def test_versions(self, store):
        asyncio.run(make_orchestrator(store, make_source()).refresh())

        by_api = {dep.api: dep for dep in store.load().deprecations}
        assert by_api["Foo.baz"].version == "3.10.0"
        assert by_api["Foo.quux"].version == "Flutter master"
        assert by_api["ThemeData.accentColor"].replacement == "colorScheme.secondary"

    def test_replaces_previous_cache(self, store):
        store.save(DeprecationCache(
            last_updated=NOW - timedelta(hours=48),
            deprecations=[Deprecation(api="Gone.api")],
        ))
        asyncio.run(make_orchestrator(store, make_source()).refresh())

        assert "Gone.api" not in [dep.api for dep in store.load().deprecations]


class TestStaleness:
    """Test the TTL gate."""

    def test_fresh_cache_is_not_refreshed(self, store):
        store.save(DeprecationCache(last_updated=NOW - timedelta(hours=23), deprecations=[Deprecation(api="A")]))
        source = make_source()

        result = asyncio.run(make_orchestrator(store, source).refresh())

        assert result.updated is False
        assert result.total == 1
        assert source.calls == []

    def test_stale_cache_is_refreshed(self, store):
        store.save(DeprecationCache(last_updated=NOW - timedelta(hours=25), deprecations=[]))
        source = make_source()

        result = asyncio.run(make_orchestrator(store, source).refresh())

        assert result.updated is True
        assert ("list", "widgets/") in source.calls

    def test_force_ignores_ttl(self, store):
        store.save(DeprecationCache(last_updated=NOW - timedelta(minutes=5), deprecations=[]))
        result = asyncio.run(make_orchestrator(store, make_source()).refresh(force=True))
        assert result.updated is True

    def test_custom_ttl(self, store):
        store.save(DeprecationCache(last_updated=NOW - timedelta(hours=2), deprecations=[]))
        orchestrator = make_orchestrator(store, make_source(), ttl=timedelta(hours=1))
        assert asyncio.run(orchestrator.refresh()).updated is True

    def test_second_refresh_is_idempotent(self, store):
        source = make_source()
        orchestrator = make_orchestrator(store, source)

        asyncio.run(orchestrator.refresh())
        first_bytes = store.cache_path.read_bytes()
        calls_after_first = len(source.calls)

        result = asyncio.run(orchestrator.refresh())

        assert result.updated is False
        assert len(source.calls) == calls_after_first
        assert store.cache_path.read_bytes() == first_bytes

    def test_last_updated_never_moves_backwards(self, store):
        future = NOW + timedelta(hours=1)
        store.save(DeprecationCache(last_updated=future, deprecations=[]))

        result = asyncio.run(make_orchestrator(store, make_source()).refresh(force=True))

        assert result.last_updated == future
        assert store.load().last_updated == future

    def test_cache_load_failure_propagates(self):
        broken_store = Mock()
        broken_store.load.side_effect = CacheError("unreadable")

        with pytest.raises(CacheError):
            asyncio.run(make_orchestrator(broken_store, make_source()).refresh())


class TestFailureIsolation:
    """Test that one failing directory or file never aborts a refresh."""

    def test_directory_failure(self, store):
        source = make_source(failures={"widgets/": NetworkError("boom")})
        messages = []

        result = asyncio.run(make_orchestrator(store, source).refresh(progress=messages.append))

        assert result.updated is True
        assert result.failed_units == ["widgets/"]
        assert [dep.api for dep in store.load().deprecations][0] == "ThemeData.accentColor"
        assert any("⚠️ Warning: Failed to scan directory widgets/" in m for m in messages)

    def test_dropped_connection_skips_only_that_directory(self, store):
        def handler(request):
            if request.url.host == "api.github.com":
                if request.url.path.endswith("/material"):
                    raise httpx.RemoteProtocolError("Server disconnected without sending a response.",
                                                    request=request)
                return httpx.Response(200, json=[{"name": "foo.dart", "type": "file"}])
            return httpx.Response(200, text="\n".join(WIDGETS_DOC))

        source = GitHubSource(policy=FAST_RETRY, transport=httpx.MockTransport(handler))
        result = asyncio.run(make_orchestrator(store, source).refresh())

        assert result.updated is True
        assert result.failed_units == ["material/"]
        saved = [dep.api for dep in store.load().deprecations]
        assert saved[:2] == ["Foo.baz", "Foo.quux"]
        assert len(saved) == 2 + len(KNOWN_PATTERNS)

    def test_file_failure(self, store):
        source = make_source(failures={"widgets/foo.dart": NetworkError("boom")})
        result = asyncio.run(make_orchestrator(store, source).refresh())

        assert result.failed_units == ["widgets/foo.dart"]
        assert result.scanned_documents == 2
        assert result.source_deprecations == 1

    def test_rate_limit_is_reported_distinctly(self, store):
        source = make_source(failures={"material/": RateLimitError("HTTP 403")})
        messages = []

        result = asyncio.run(make_orchestrator(store, source).refresh(progress=messages.append))

        assert result.failed_units == ["material/"]
        assert any(m.startswith("⛔ Rate limited") for m in messages)
        assert not any("Warning" in m for m in messages)

    def test_all_units_failing_still_saves_known_patterns(self, store):
        source = make_source(failures={
            "widgets/": RateLimitError("HTTP 403"),
            "material/": RateLimitError("HTTP 403"),
        })
        result = asyncio.run(make_orchestrator(store, source).refresh())

        assert result.total == len(KNOWN_PATTERNS)
        assert len(store.load()) == len(KNOWN_PATTERNS)


class TestProgress:

    def test_milestones(self, store):
        messages = []
        asyncio.run(make_orchestrator(store, make_source()).refresh(progress=messages.append))

        assert "📂 Scanning directory 1/2: widgets/" in messages
        assert "📂 Scanning directory 2/2: material/" in messages
        assert "  🔍 Found 2 deprecations in foo.dart" in messages
        assert any(m.startswith("💾 Saving") for m in messages)

    def test_skip_message_when_fresh(self, store):
        store.save(DeprecationCache(last_updated=NOW, deprecations=[]))
        messages = []
        asyncio.run(make_orchestrator(store, make_source()).refresh(progress=messages.append))
        assert messages == ["Cache is up to date, skipping update"]

    def test_failing_callback_does_not_abort(self, store):
        progress = Mock(side_effect=RuntimeError("terminal closed"))
        result = asyncio.run(make_orchestrator(store, make_source()).refresh(progress=progress))

        assert result.updated is True
        assert progress.called


class TestConcurrency:

    def test_bounded_concurrency_keeps_order(self, tmp_path):
        from flutter_deprecations.cache import DeprecationCacheStore

        sequential = DeprecationCacheStore(cache_dir=str(tmp_path / "seq"))
        concurrent = DeprecationCacheStore(cache_dir=str(tmp_path / "par"))

        asyncio.run(make_orchestrator(sequential, make_source()).refresh())
        asyncio.run(make_orchestrator(concurrent, make_source(), max_concurrency=4).refresh())

        assert sequential.cache_path.read_bytes() == concurrent.cache_path.read_bytes()


class TestReleaseNotes:

    def test_release_notes_are_included(self, store):
        async def notes():
            return [Deprecation(api="Foo.legacy", replacement="Foo.modern", version="3.19.0")]

        asyncio.run(make_orchestrator(store, make_source(), release_notes=notes).refresh())

        apis = [dep.api for dep in store.load().deprecations]
        assert apis.index("Foo.legacy") < apis.index(KNOWN_PATTERNS[0].api)

    def test_release_notes_failure_is_isolated(self, store):
        async def notes():
            raise NetworkError("offline")

        result = asyncio.run(make_orchestrator(store, make_source(), release_notes=notes).refresh())

        assert result.updated is True
        assert result.failed_units == ["release notes"]


class TestCreateOrchestrator:

    def test_wiring_from_settings(self, store):
        settings = Settings(branch="stable", max_retries=5, max_concurrency=3, include_release_notes=True)
        orchestrator = create_orchestrator(settings, store)

        assert orchestrator.store is store
        assert isinstance(orchestrator.source, GitHubSource)
        assert orchestrator.source.branch == "stable"
        assert orchestrator.source.policy.max_attempts == 5
        assert orchestrator.max_concurrency == 3
        assert orchestrator.version_label == "Flutter stable"
        assert orchestrator.release_notes is not None
        assert orchestrator.ttl == timedelta(hours=24)

    def test_release_notes_disabled_by_default(self, store):
        assert create_orchestrator(Settings(), store).release_notes is None


def test_saved_file_is_json(store):
    asyncio.run(make_orchestrator(store, make_source()).refresh())
    data = json.loads(store.cache_path.read_text(encoding="utf-8"))
    assert data["last_updated"] == NOW.isoformat()
