"""Shared fixtures for the Flutter deprecations tests."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add the src directory to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from flutter_deprecations.cache import DeprecationCacheStore  # noqa: E402
from flutter_deprecations.error_handling import RetryPolicy  # noqa: E402

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

# No sleeping between attempts in tests
FAST_RETRY = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def store(tmp_path):
    """A cache store writing into a per-test directory."""
    return DeprecationCacheStore(cache_dir=str(tmp_path / "cache"))
