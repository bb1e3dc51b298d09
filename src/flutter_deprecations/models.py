"""Data models shared across the Flutter deprecations server."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Timestamp of a cache that has never been refreshed
EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC.

    Raises:
        ValueError: If the value is not a parseable timestamp string
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    # Trim fractional seconds beyond microsecond precision
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        while rest and rest[0].isdigit():
            digits += rest[0]
            rest = rest[1:]
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Deprecation:
    """A deprecated Flutter API and what to use instead."""

    api: str
    replacement: str = ""
    version: str = ""
    description: str = ""
    example: str = ""

    def to_dict(self) -> Dict[str, str]:
        data = {
            "api": self.api,
            "replacement": self.replacement,
            "version": self.version,
            "description": self.description,
        }
        if self.example:
            data["example"] = self.example
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Deprecation":
        if not isinstance(data, dict):
            raise ValueError(f"Deprecation entry must be an object, got {type(data).__name__}")
        return cls(
            api=str(data.get("api") or ""),
            replacement=str(data.get("replacement") or ""),
            version=str(data.get("version") or ""),
            description=str(data.get("description") or ""),
            example=str(data.get("example") or ""),
        )


@dataclass
class DeprecationCache:
    """The persisted aggregate of known deprecations."""

    last_updated: datetime = EPOCH
    deprecations: List[Deprecation] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "DeprecationCache":
        return cls()

    def __len__(self) -> int:
        return len(self.deprecations)

    def age(self, now: Optional[datetime] = None):
        """Time elapsed since the last successful refresh."""
        now = now or datetime.now(timezone.utc)
        return now - self.last_updated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_updated": self.last_updated.isoformat(),
            "deprecations": [dep.to_dict() for dep in self.deprecations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeprecationCache":
        """Build a cache from its JSON form.

        Raises:
            ValueError: If the structure does not look like a cache
        """
        if not isinstance(data, dict):
            raise ValueError("Cache root must be an object")

        entries = data.get("deprecations") or []
        if not isinstance(entries, list):
            raise ValueError("'deprecations' must be a list")

        raw_timestamp = data.get("last_updated")
        last_updated = parse_timestamp(raw_timestamp) if raw_timestamp else EPOCH

        return cls(
            last_updated=last_updated,
            deprecations=[Deprecation.from_dict(entry) for entry in entries],
        )


@dataclass
class FlutterRelease:
    """A Flutter release as reported by the GitHub releases API."""

    name: str
    tag_name: str
    published_at: str
    body: str = ""
    prerelease: bool = False

    @property
    def version(self) -> str:
        return self.tag_name[1:] if self.tag_name.startswith("v") else self.tag_name

    @property
    def published(self) -> Optional[datetime]:
        try:
            return parse_timestamp(self.published_at)
        except ValueError:
            return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlutterRelease":
        if not isinstance(data, dict):
            raise ValueError("Release entry must be an object")
        return cls(
            name=str(data.get("name") or ""),
            tag_name=str(data.get("tag_name") or ""),
            published_at=str(data.get("published_at") or ""),
            body=str(data.get("body") or ""),
            prerelease=bool(data.get("prerelease", False)),
        )


@dataclass
class DockerImageStatus:
    instrumentisto: bool = False
    cirrusci: bool = False


@dataclass
class FlutterVersionInfo:
    """Latest Flutter version and where it can be obtained."""

    latest_version: str
    fvm_installed: bool = False
    fvm_version_exists: bool = False
    docker_images: DockerImageStatus = field(default_factory=DockerImageStatus)
    details: str = ""
