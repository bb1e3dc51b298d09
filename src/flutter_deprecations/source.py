"""Document sources that feed the annotation scanner.

The refresh orchestrator only depends on the ``DocumentSource`` protocol:
list the Dart files under a directory prefix, then fetch each file as lines.
``GitHubSource`` implements it against the flutter/flutter repository.
"""

from typing import List, Optional, Protocol

import httpx
import structlog

from .config import (
    DEFAULT_BRANCH,
    FLUTTER_REPO,
    FLUTTER_SOURCE_ROOT,
    GITHUB_API_URL,
    GITHUB_RAW_URL,
)
from .error_handling import RetryPolicy, SourceParseError, safe_http_get

logger = structlog.get_logger(__name__)

SOURCE_EXTENSION = ".dart"


class DocumentSource(Protocol):
    """Lists and fetches source documents."""

    async def list_documents(self, prefix: str) -> List[str]:
        ...

    async def fetch_document(self, prefix: str, name: str) -> List[str]:
        ...


class GitHubSource:
    """Reads Flutter framework sources from GitHub.

    Directory listings come from the contents API, file bodies from
    raw.githubusercontent.com. Requests are unauthenticated, so the GitHub
    rate limit applies and surfaces as ``RateLimitError``.
    """

    def __init__(
        self,
        branch: str = DEFAULT_BRANCH,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        repo: str = FLUTTER_REPO,
        source_root: str = FLUTTER_SOURCE_ROOT,
    ):
        self.branch = branch
        self.policy = policy
        self.transport = transport
        self.repo = repo
        self.source_root = source_root

    def listing_url(self, prefix: str) -> str:
        path = f"{self.source_root}{prefix}".rstrip("/")
        return f"{GITHUB_API_URL}/repos/{self.repo}/contents/{path}"

    def document_url(self, prefix: str, name: str) -> str:
        return f"{GITHUB_RAW_URL}/{self.repo}/{self.branch}/{self.source_root}{prefix}{name}"

    async def list_documents(self, prefix: str) -> List[str]:
        """List the Dart files directly under ``prefix``, in listing order.

        Raises:
            RateLimitError, DocumentationNotFoundError, NetworkError: on fetch failure
            SourceParseError: if the listing is not a JSON array of entries
        """
        url = self.listing_url(prefix)
        logger.debug("listing_documents", url=url)
        response = await safe_http_get(
            url,
            headers={"Accept": "application/vnd.github+json"},
            params={"ref": self.branch},
            policy=self.policy,
            transport=self.transport,
        )

        try:
            entries = response.json()
        except ValueError as e:
            raise SourceParseError(f"Invalid directory listing for {prefix}: {e}") from e
        if not isinstance(entries, list):
            raise SourceParseError(f"Directory listing for {prefix} is not a list")

        names = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            name = entry.get("name")
            if entry.get("type") == "file" and isinstance(name, str) and name.endswith(SOURCE_EXTENSION):
                names.append(name)
        return names

    async def fetch_document(self, prefix: str, name: str) -> List[str]:
        """Fetch one document as a list of lines.

        Raises:
            RateLimitError, DocumentationNotFoundError, NetworkError: on fetch failure
        """
        response = await safe_http_get(
            self.document_url(prefix, name),
            policy=self.policy,
            transport=self.transport,
        )
        return response.text.splitlines()
