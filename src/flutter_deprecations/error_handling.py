"""
Error handling utilities for the Flutter deprecations server.

This module provides the error taxonomy, bounded retry logic with exponential
backoff, and user-friendly error responses for the tools.
"""

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps
from typing import Optional, Dict, List, Any

import httpx
import structlog

from .config import USER_AGENT

logger = structlog.get_logger()

# Error handling constants
MAX_RETRIES = 3
BASE_RETRY_DELAY = 1.0  # seconds
MAX_RETRY_DELAY = 16.0  # seconds
DEFAULT_TIMEOUT = 30.0  # seconds
CONNECTION_TIMEOUT = 10.0  # seconds

# Any httpx transport failure, including a server that drops the connection
RETRYABLE_EXCEPTIONS = (httpx.TransportError,)


class NetworkError(Exception):
    """Custom exception for network-related errors"""
    pass


class DocumentationNotFoundError(Exception):
    """Custom exception when a source document or release is not found"""
    pass


class RateLimitError(Exception):
    """Custom exception for rate limit or forbidden responses"""
    pass


class SourceParseError(Exception):
    """Custom exception for upstream payloads that cannot be understood"""
    pass


class CacheError(Exception):
    """Custom exception for cache read/write failures"""
    pass


# Failures that only affect one directory or document during a refresh
FETCH_ERRORS = (NetworkError, RateLimitError, DocumentationNotFoundError, SourceParseError)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff and jitter."""

    max_attempts: int = MAX_RETRIES
    base_delay: float = BASE_RETRY_DELAY
    max_delay: float = MAX_RETRY_DELAY

    def backoff_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay with jitter."""
        return min(
            self.base_delay * (2 ** attempt) + random.uniform(0, self.base_delay),
            self.max_delay
        )


DEFAULT_RETRY_POLICY = RetryPolicy()


def with_retry(policy: Optional[RetryPolicy] = None, retry_on: tuple = None):
    """
    Decorator for adding retry logic with exponential backoff.

    Args:
        policy: Attempt count and delays (default: DEFAULT_RETRY_POLICY)
        retry_on: Tuple of exception types to retry on (default: network errors)
    """
    if policy is None:
        policy = DEFAULT_RETRY_POLICY
    if retry_on is None:
        retry_on = RETRYABLE_EXCEPTIONS

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(policy.max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    last_exception = e
                    if attempt < policy.max_attempts - 1:
                        delay = policy.backoff_delay(attempt)
                        logger.warning(
                            "retrying_request",
                            function=func.__name__,
                            attempt=attempt + 1,
                            max_retries=policy.max_attempts,
                            delay=delay,
                            error=str(e),
                            error_type=type(e).__name__
                        )
                        await asyncio.sleep(delay)
                    else:
                        raise NetworkError(
                            f"Network error after {policy.max_attempts} attempts: {str(e)}"
                        ) from e
                except httpx.HTTPStatusError as e:
                    # Don't retry on 4xx errors (client errors)
                    if 400 <= e.response.status_code < 500:
                        raise
                    last_exception = e
                    if attempt < policy.max_attempts - 1:
                        delay = policy.backoff_delay(attempt)
                        logger.warning(
                            "retrying_server_error",
                            function=func.__name__,
                            attempt=attempt + 1,
                            max_retries=policy.max_attempts,
                            delay=delay,
                            status_code=e.response.status_code
                        )
                        await asyncio.sleep(delay)
                    else:
                        raise

            if last_exception:
                raise last_exception

        return wrapper
    return decorator


async def safe_http_get(
    url: str,
    headers: Optional[Dict] = None,
    timeout: float = DEFAULT_TIMEOUT,
    policy: Optional[RetryPolicy] = None,
    params: Optional[Dict] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.Response:
    """
    Safely perform HTTP GET request with proper error handling and retries.

    Args:
        url: URL to fetch
        headers: Optional HTTP headers
        timeout: Request timeout in seconds
        policy: Retry policy applied to the request
        params: Optional query parameters
        transport: Optional httpx transport (used by tests)

    Returns:
        HTTP response object

    Raises:
        RateLimitError: For HTTP 403/429 responses
        DocumentationNotFoundError: For HTTP 404 responses
        NetworkError: For transport failures after retries and any other HTTP error
    """
    headers = dict(headers or {})
    headers.setdefault("User-Agent", USER_AGENT)

    @with_retry(policy=policy)
    async def _get():
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=CONNECTION_TIMEOUT),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            transport=transport,
        ) as client:
            response = await client.get(url, headers=headers, params=params)
            response.raise_for_status()
            return response

    try:
        return await _get()
    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code
        if status_code in (403, 429):
            raise RateLimitError(
                f"Rate limited or forbidden (HTTP {status_code}) fetching {url}"
            ) from e
        if status_code == 404:
            raise DocumentationNotFoundError(f"Not found (HTTP 404): {url}") from e
        raise NetworkError(f"HTTP error {status_code} fetching {url}") from e
    except httpx.HTTPError as e:
        raise NetworkError(f"HTTP failure fetching {url}: {type(e).__name__}: {e}") from e


def format_error_response(
    error_type: str,
    message: str,
    suggestions: Optional[List[str]] = None,
    context: Optional[Dict] = None
) -> Dict[str, Any]:
    """
    Format consistent error responses with helpful information.

    Args:
        error_type: Type of error (e.g., "not_found", "network_error")
        message: Human-readable error message
        suggestions: List of helpful suggestions for the user
        context: Additional context information

    Returns:
        Formatted error response dictionary
    """
    response = {
        "error": True,
        "error_type": error_type,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

    if suggestions:
        response["suggestions"] = suggestions

    if context:
        response["context"] = context

    return response


def classify_error(error: BaseException) -> str:
    """Map an exception to the error type used in responses."""
    if isinstance(error, RateLimitError):
        return "rate_limited"
    if isinstance(error, DocumentationNotFoundError):
        return "not_found"
    if isinstance(error, NetworkError):
        return "network_error"
    if isinstance(error, SourceParseError):
        return "parse_error"
    if isinstance(error, CacheError):
        return "cache_error"
    return "unexpected_error"


def get_error_suggestions(error_type: str) -> List[str]:
    """
    Get suggestions based on error type.

    Args:
        error_type: Type of error

    Returns:
        List of helpful suggestions
    """
    suggestions_map = {
        "not_found": [
            "The Flutter repository layout may have changed",
            "Check that the configured branch exists",
        ],
        "network_error": [
            "Check your internet connection",
            "GitHub may be temporarily unavailable",
            "Try again in a few moments",
        ],
        "rate_limited": [
            "The GitHub API rate limit has been reached",
            "Wait a while before refreshing the cache again",
            "Known deprecations are still available from the curated table",
        ],
        "parse_error": [
            "The upstream response format may have changed",
            "Report this issue if it persists",
        ],
        "cache_error": [
            "The local cache could not be read or written",
            "Check disk space and permissions for the cache directory",
            "Try clearing the cache with: flutter-deprecations clear-cache",
        ],
    }

    return list(suggestions_map.get(error_type, [
        "An unexpected error occurred",
        "Please try again",
        "If the problem persists, check the server logs"
    ]))


def error_response_from_exception(error: BaseException, context: Optional[Dict] = None) -> Dict[str, Any]:
    """Build a formatted error response for an exception."""
    error_type = classify_error(error)
    return format_error_response(
        error_type,
        str(error) or type(error).__name__,
        suggestions=get_error_suggestions(error_type),
        context=context,
    )


def render_error_text(title: str, response: Dict[str, Any]) -> str:
    """Render an error response as plain text for tool output."""
    lines = [f"{title}: {response.get('message', 'unknown error')}"]
    suggestions = response.get("suggestions") or []
    if suggestions:
        lines.append("")
        lines.append("Suggestions:")
        lines.extend(f"  - {suggestion}" for suggestion in suggestions)
    return "\n".join(lines)
