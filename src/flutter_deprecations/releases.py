"""Flutter release metadata: latest stable version, release notes and availability."""

import asyncio
import calendar
import re
import shutil
import subprocess
from datetime import datetime, timezone
from typing import List, Optional

import httpx
import structlog

from .config import FLUTTER_RELEASES_URL, MAX_RELEASES
from .error_handling import (
    FETCH_ERRORS,
    DocumentationNotFoundError,
    RetryPolicy,
    SourceParseError,
    safe_http_get,
)
from .models import Deprecation, DockerImageStatus, FlutterRelease, FlutterVersionInfo

logger = structlog.get_logger(__name__)

STABLE_VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")
PRERELEASE_MARKERS = ("beta", "dev", "pre", "rc", "alpha", "hotfix")
RELEASE_NOTES_WINDOW_MONTHS = 18

RELEASE_NOTE_PATTERNS = (
    re.compile(
        r"deprecated[:\s]+([A-Z][a-zA-Z0-9_.]*)\s*(?:in favor of|replaced by|use)\s+([A-Z][a-zA-Z0-9_.]*)",
        re.IGNORECASE,
    ),
    re.compile(
        r"([A-Z][a-zA-Z0-9_.]*)\s+(?:is\s+)?deprecated[,\s]*(?:use|replaced by)\s+([A-Z][a-zA-Z0-9_.]*)",
        re.IGNORECASE,
    ),
)

DOCKER_HUB_TAG_URL = "https://hub.docker.com/v2/repositories/{image}/tags/{tag}"
DOCKER_IMAGES = ("instrumentisto/flutter", "cirrusci/flutter")


async def fetch_releases(
    policy: Optional[RetryPolicy] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[FlutterRelease]:
    """Fetch Flutter releases from GitHub, newest first.

    Raises:
        SourceParseError: If the payload is not a list of releases
    """
    response = await safe_http_get(
        FLUTTER_RELEASES_URL,
        headers={"Accept": "application/vnd.github+json"},
        params={"per_page": MAX_RELEASES},
        policy=policy,
        transport=transport,
    )
    try:
        payload = response.json()
    except ValueError as e:
        raise SourceParseError(f"Invalid releases payload: {e}") from e
    if not isinstance(payload, list):
        raise SourceParseError("Releases payload is not a list")

    releases = []
    for entry in payload:
        try:
            releases.append(FlutterRelease.from_dict(entry))
        except ValueError:
            logger.debug("skipping_malformed_release", entry_type=type(entry).__name__)
    return sort_releases(releases)


def sort_releases(releases: List[FlutterRelease]) -> List[FlutterRelease]:
    """Sort by publish time, newest first; unparseable dates go last."""
    def key(release: FlutterRelease):
        published = release.published
        return (published is not None, published or datetime.min.replace(tzinfo=timezone.utc))
    return sorted(releases, key=key, reverse=True)


def is_stable_release(release: FlutterRelease) -> bool:
    """Check whether a release is a plain X.Y.Z stable release."""
    if release.prerelease:
        return False
    tag_lower = release.tag_name.lower()
    if any(marker in tag_lower for marker in PRERELEASE_MARKERS):
        return False
    if "-" in release.tag_name:
        return False
    return bool(STABLE_VERSION_PATTERN.match(release.version))


def latest_stable_version(releases: List[FlutterRelease]) -> str:
    """Pick the newest stable version, falling back to the newest release.

    Raises:
        DocumentationNotFoundError: If there are no releases at all
    """
    if not releases:
        raise DocumentationNotFoundError("No Flutter releases found")
    for release in releases:
        if is_stable_release(release):
            return release.version
    return releases[0].version


def months_before(moment: datetime, months: int) -> datetime:
    year, month = divmod(moment.month - 1 - months, 12)
    year += moment.year
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def extract_release_note_deprecations(
    releases: List[FlutterRelease],
    now: Optional[datetime] = None,
    window_months: int = RELEASE_NOTES_WINDOW_MONTHS,
) -> List[Deprecation]:
    """Extract "X is deprecated, use Y" statements from recent release notes."""
    now = now or datetime.now(timezone.utc)
    cutoff = months_before(now, window_months)
    deprecations = []

    for release in releases:
        published = release.published
        if published is None or published <= cutoff:
            continue

        for pattern in RELEASE_NOTE_PATTERNS:
            for match in pattern.finditer(release.body):
                api = match.group(1).strip()
                replacement = (match.group(2) or "").strip()
                # Short dotless words are almost always prose, not API names
                if len(api) < 3 or ("." not in api and len(api) < 5):
                    continue
                deprecations.append(Deprecation(
                    api=api,
                    replacement=replacement,
                    version=release.version,
                    description=f"Deprecated in Flutter {release.version}",
                ))

    return deprecations


async def fetch_release_note_deprecations(
    policy: Optional[RetryPolicy] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Deprecation]:
    releases = await fetch_releases(policy=policy, transport=transport)
    return extract_release_note_deprecations(releases)


def _run_quiet(args: List[str]) -> Optional[str]:
    try:
        completed = subprocess.run(args, capture_output=True, text=True, timeout=30, check=True)
    except (OSError, subprocess.SubprocessError):
        return None
    return completed.stdout


def check_fvm_installed() -> bool:
    return shutil.which("fvm") is not None and _run_quiet(["fvm", "--version"]) is not None


def check_fvm_version_exists(version: str) -> bool:
    output = _run_quiet(["fvm", "list"])
    return output is not None and version in output


async def check_docker_image_exists(
    image: str,
    tag: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    url = DOCKER_HUB_TAG_URL.format(image=image, tag=tag)
    try:
        await safe_http_get(url, policy=RetryPolicy(max_attempts=1), transport=transport)
    except FETCH_ERRORS as e:
        logger.debug("docker_image_unavailable", image=image, tag=tag, error=str(e))
        return False
    return True


def build_version_details(info: FlutterVersionInfo, releases: List[FlutterRelease]) -> str:
    """Render the version availability report."""
    version = info.latest_version
    checked = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    lines = [f"Latest Flutter Version: {version} (Checked: {checked} UTC)", ""]

    if info.fvm_installed:
        lines.append("FVM Status: ✅ Installed")
        if info.fvm_version_exists:
            lines.append(f"  - Version {version}: ✅ Available locally")
        else:
            lines.append(f"  - Version {version}: ❌ Not installed locally")
            lines.append(f"  - Install with: fvm install {version}")
    else:
        lines.append("FVM Status: ❌ Not installed")
        lines.append("  - Install FVM: https://fvm.app/docs/getting_started/installation")

    lines.append("")
    lines.append("Docker Images:")
    for image, available in (
        ("instrumentisto/flutter", info.docker_images.instrumentisto),
        ("cirrusci/flutter", info.docker_images.cirrusci),
    ):
        status = "✅ Available" if available else "❌ Not available"
        lines.append(f"  - {image}:{version} {status}")

    lines.append("")
    lines.append("Usage Examples:")
    if info.fvm_installed:
        lines.append(f"  - FVM: fvm use {version}")
    lines.append(f"  - Docker (instrumentisto): docker run -it instrumentisto/flutter:{version}")
    lines.append(f"  - Docker (cirrusci): docker run -it cirrusci/flutter:{version}")

    lines.append("")
    lines.append(f"Releases inspected: {len(releases)}")
    if releases:
        newest = releases[0]
        lines.append(f"Most recent release: {newest.tag_name} (prerelease: {str(newest.prerelease).lower()})")

    return "\n".join(lines) + "\n"


async def get_flutter_version_info(
    policy: Optional[RetryPolicy] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FlutterVersionInfo:
    """Determine the latest Flutter version and where it is available.

    Raises:
        DocumentationNotFoundError: If GitHub reports no releases
        NetworkError, RateLimitError, SourceParseError: If releases cannot be fetched
    """
    releases = await fetch_releases(policy=policy, transport=transport)
    latest = latest_stable_version(releases)

    info = FlutterVersionInfo(latest_version=latest)
    info.fvm_installed = await asyncio.to_thread(check_fvm_installed)
    if info.fvm_installed:
        info.fvm_version_exists = await asyncio.to_thread(check_fvm_version_exists, latest)

    instrumentisto, cirrusci = await asyncio.gather(
        *(check_docker_image_exists(image, latest, transport=transport) for image in DOCKER_IMAGES)
    )
    info.docker_images = DockerImageStatus(instrumentisto=instrumentisto, cirrusci=cirrusci)
    info.details = build_version_details(info, releases)

    logger.info("version_info_resolved", latest_version=latest, fvm_installed=info.fvm_installed)
    return info
