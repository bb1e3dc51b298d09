#!/usr/bin/env python3
"""Test cases for the GitHub document source."""

import asyncio

import httpx
import pytest

from flutter_deprecations.error_handling import (
    DocumentationNotFoundError,
    NetworkError,
    RateLimitError,
    SourceParseError,
)
from flutter_deprecations.source import GitHubSource

from conftest import FAST_RETRY

LISTING = [
    {"name": "app.dart", "type": "file"},
    {"name": "README.md", "type": "file"},
    {"name": "nested", "type": "dir"},
    {"name": "basic.dart", "type": "file"},
]


def make_source(handler, branch="master"):
    return GitHubSource(branch=branch, policy=FAST_RETRY, transport=httpx.MockTransport(handler))


class TestGitHubSource:
    """Test listing and fetching through a mocked transport."""

    def test_urls(self):
        source = GitHubSource(branch="stable")
        assert source.listing_url("widgets/") == (
            "https://api.github.com/repos/flutter/flutter/contents/packages/flutter/lib/src/widgets"
        )
        assert source.document_url("widgets/", "app.dart") == (
            "https://raw.githubusercontent.com/flutter/flutter/stable/packages/flutter/lib/src/widgets/app.dart"
        )

    def test_list_documents_filters_dart_files(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=LISTING)

        names = asyncio.run(make_source(handler, branch="stable").list_documents("widgets/"))

        assert names == ["app.dart", "basic.dart"]
        assert seen[0].url.params["ref"] == "stable"
        assert seen[0].headers["User-Agent"].startswith("Flutter-Deprecations-MCP")

    def test_fetch_document_returns_lines(self):
        def handler(request):
            assert request.url.host == "raw.githubusercontent.com"
            assert request.url.path.endswith("/packages/flutter/lib/src/widgets/app.dart")
            return httpx.Response(200, text="class App {\n  void run() {}\n}\n")

        lines = asyncio.run(make_source(handler).fetch_document("widgets/", "app.dart"))
        assert lines == ["class App {", "  void run() {}", "}"]

    @pytest.mark.parametrize("status", [403, 429])
    def test_rate_limit(self, status):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(status, json={"message": "API rate limit exceeded"})

        with pytest.raises(RateLimitError):
            asyncio.run(make_source(handler).list_documents("widgets/"))
        # Client errors are not retried
        assert len(calls) == 1

    def test_not_found(self):
        with pytest.raises(DocumentationNotFoundError):
            asyncio.run(make_source(lambda request: httpx.Response(404)).fetch_document("widgets/", "gone.dart"))

    def test_server_error_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(502)

        with pytest.raises(NetworkError):
            asyncio.run(make_source(handler).fetch_document("widgets/", "app.dart"))
        assert len(calls) == FAST_RETRY.max_attempts

    def test_transient_failure_then_success(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, text="void main() {}")

        lines = asyncio.run(make_source(handler).fetch_document("widgets/", "app.dart"))
        assert lines == ["void main() {}"]
        assert len(calls) == 2

    def test_connection_failure_becomes_network_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(NetworkError):
            asyncio.run(make_source(handler).list_documents("widgets/"))

    def test_dropped_connection_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.RemoteProtocolError("Server disconnected", request=request)

        with pytest.raises(NetworkError):
            asyncio.run(make_source(handler).list_documents("material/"))
        assert len(calls) == FAST_RETRY.max_attempts

    def test_redirect_loop_becomes_network_error(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)

        with pytest.raises(NetworkError):
            asyncio.run(make_source(handler).fetch_document("widgets/", "app.dart"))
        assert len(calls) == 1

    def test_invalid_listing_json(self):
        with pytest.raises(SourceParseError):
            asyncio.run(make_source(lambda request: httpx.Response(200, text="<html>")).list_documents("widgets/"))

    def test_listing_not_a_list(self):
        handler = lambda request: httpx.Response(200, json={"message": "This is a file"})  # noqa: E731
        with pytest.raises(SourceParseError):
            asyncio.run(make_source(handler).list_documents("widgets/"))
