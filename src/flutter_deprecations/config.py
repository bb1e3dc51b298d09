"""Runtime configuration for the Flutter deprecations server.

Every setting can be overridden through an environment variable; the CLI
writes its flags into the same variables before starting the server.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional, Tuple

CACHE_FILE = "flutter_deprecations.json"
APP_NAME = "FlutterDeprecations"
DEFAULT_TTL_HOURS = 24.0
DEFAULT_BRANCH = "master"
USER_AGENT = "Flutter-Deprecations-MCP/0.2 (github.com/flutter-mcp/flutter-deprecations)"

GITHUB_API_URL = "https://api.github.com"
GITHUB_RAW_URL = "https://raw.githubusercontent.com"
FLUTTER_REPO = "flutter/flutter"
FLUTTER_SOURCE_ROOT = "packages/flutter/lib/src/"
FLUTTER_RELEASES_URL = f"{GITHUB_API_URL}/repos/{FLUTTER_REPO}/releases"
MAX_RELEASES = 100

# Library directories under packages/flutter/lib/src/ that are scanned
SOURCE_PREFIXES: Tuple[str, ...] = (
    "widgets/",
    "material/",
    "cupertino/",
    "services/",
    "rendering/",
    "foundation/",
    "painting/",
    "gestures/",
    "animation/",
)


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _env_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Resolved settings for one process."""

    cache_dir: Optional[str] = None
    ttl_hours: float = DEFAULT_TTL_HOURS
    branch: str = DEFAULT_BRANCH
    max_retries: int = 3
    retry_delay: float = 1.0
    max_concurrency: int = 1
    include_release_notes: bool = False
    refresh_on_start: bool = True
    debug: bool = False
    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=self.ttl_hours)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            cache_dir=env.get("CACHE_DIR") or None,
            ttl_hours=_env_float(env.get("FLUTTER_DEPRECATIONS_TTL_HOURS"), DEFAULT_TTL_HOURS),
            branch=env.get("FLUTTER_DEPRECATIONS_BRANCH") or DEFAULT_BRANCH,
            max_retries=max(1, _env_int(env.get("FLUTTER_DEPRECATIONS_MAX_RETRIES"), 3)),
            retry_delay=max(0.0, _env_float(env.get("FLUTTER_DEPRECATIONS_RETRY_DELAY"), 1.0)),
            max_concurrency=max(1, _env_int(env.get("FLUTTER_DEPRECATIONS_CONCURRENCY"), 1)),
            include_release_notes=_env_bool(env.get("FLUTTER_DEPRECATIONS_RELEASE_NOTES")),
            refresh_on_start=_env_bool(env.get("FLUTTER_DEPRECATIONS_REFRESH_ON_START"), default=True),
            debug=_env_bool(env.get("DEBUG")),
            transport=env.get("MCP_TRANSPORT") or "stdio",
            host=env.get("MCP_HOST") or "127.0.0.1",
            port=_env_int(env.get("MCP_PORT"), 8000),
        )
