#!/usr/bin/env python3
"""Test cases for matching code snippets against known deprecations."""

from unittest.mock import Mock

from flutter_deprecations.error_handling import CacheError
from flutter_deprecations.matcher import CodeMatcher, dedupe_by_api
from flutter_deprecations.models import Deprecation, DeprecationCache
from flutter_deprecations.patterns import KNOWN_PATTERN_VERSION, KNOWN_PATTERNS

from conftest import NOW


class TestCodeMatcher:
    """Test the two-pass matcher."""

    def test_with_opacity_pattern(self, store):
        result = CodeMatcher(store).check("Color.red.withOpacity(0.5)")

        assert len(result) == 1
        dep = result[0]
        assert dep.api == "Color.withOpacity"
        assert dep.replacement == "Color.withValues(alpha: $1)"
        assert dep.version == KNOWN_PATTERN_VERSION
        assert "withValues" in dep.example

    def test_multiple_patterns(self, store):
        result = CodeMatcher(store).check("RaisedButton(...) and FlatButton(...)")
        assert {dep.api for dep in result} == {"RaisedButton", "FlatButton"}

    def test_modern_code_is_clean(self, store):
        result = CodeMatcher(store).check("ElevatedButton(onPressed: () {}, child: Text('x'))")
        assert result == []

    def test_every_matching_pattern_is_reported(self, store):
        code = "\n".join([
            "Color.blue.withOpacity(0.1);",
            "RaisedButton();",
            "FlatButton();",
            "OutlineButton();",
            "Scaffold.of(context).showSnackBar(snackBar);",
            "FloatingActionButton(child: Icon(Icons.add));",
        ])
        result = CodeMatcher(store).check(code)
        assert [dep.api for dep in result] == [pattern.api for pattern in KNOWN_PATTERNS]

    def test_cached_api_substring_match(self, store):
        store.save(DeprecationCache(last_updated=NOW, deprecations=[
            Deprecation(api="ThemeData.accentColor", replacement="colorScheme.secondary"),
            Deprecation(api="WillPopScope", replacement="PopScope"),
        ]))

        result = CodeMatcher(store).check("return WillPopScope(onWillPop: _onPop, child: body);")

        assert [dep.api for dep in result] == ["WillPopScope"]
        assert result[0].replacement == "PopScope"

    def test_empty_api_never_matches(self, store):
        store.save(DeprecationCache(last_updated=NOW, deprecations=[Deprecation(api="")]))
        assert CodeMatcher(store).check("anything at all") == []

    def test_duplicates_reported_without_dedupe(self, store):
        store.save(DeprecationCache(last_updated=NOW, deprecations=[
            Deprecation(api="RaisedButton", replacement="ElevatedButton", version="Flutter master"),
        ]))
        matcher = CodeMatcher(store)

        result = matcher.check("RaisedButton(onPressed: null)")
        assert [dep.api for dep in result] == ["RaisedButton", "RaisedButton"]

        deduped = matcher.check("RaisedButton(onPressed: null)", dedupe=True)
        assert len(deduped) == 1
        assert deduped[0].version == KNOWN_PATTERN_VERSION

    def test_cache_failure_keeps_pattern_matches(self):
        broken_store = Mock()
        broken_store.load.side_effect = CacheError("unreadable")

        result = CodeMatcher(broken_store).check("FlatButton()")
        assert [dep.api for dep in result] == ["FlatButton"]

    def test_custom_pattern_table(self, store):
        matcher = CodeMatcher(store, patterns=KNOWN_PATTERNS[1:2])
        assert [dep.api for dep in matcher.check("RaisedButton FlatButton")] == ["RaisedButton"]


def test_dedupe_by_api_keeps_first():
    first = Deprecation(api="A", replacement="one")
    result = dedupe_by_api([first, Deprecation(api="B"), Deprecation(api="A", replacement="two")])
    assert [dep.api for dep in result] == ["A", "B"]
    assert result[0] is first
