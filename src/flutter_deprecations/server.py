#!/usr/bin/env python3
"""Flutter Deprecations MCP Server - deprecated Flutter API detection for AI assistants"""

import asyncio
import sys
from typing import Any, Dict, List

import structlog
from mcp.server.fastmcp import FastMCP
from structlog.contextvars import bind_contextvars

from . import __version__
from .cache import get_cache
from .config import Settings
from .error_handling import (
    FETCH_ERRORS,
    CacheError,
    error_response_from_exception,
    render_error_text,
)
from .logging_utils import configure_logging
from .matcher import CodeMatcher
from .models import Deprecation, EPOCH
from .refresh import create_orchestrator
from .releases import get_flutter_version_info

# IMPORTANT: For MCP servers, logs must go to stderr, not stdout
# stdout is reserved for the JSON-RPC protocol
settings = Settings.from_env()
configure_logging(settings.debug)
logger = structlog.get_logger()

# Initialize FastMCP server
mcp = FastMCP("Flutter Deprecations Server")

cache_store = get_cache(settings.cache_dir, settings.ttl_hours)
orchestrator = create_orchestrator(settings, cache_store)
matcher = CodeMatcher(cache_store)
logger.info("cache_initialized", cache_type="json", path=str(cache_store.cache_path))

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(moment) -> str:
    if moment == EPOCH:
        return "never"
    return moment.strftime(TIMESTAMP_FORMAT)


def format_deprecations(deprecations: List[Deprecation]) -> str:
    """Render deprecations as a numbered markdown list."""
    blocks = []
    for position, dep in enumerate(deprecations, start=1):
        lines = [f"{position}. **{dep.api}**"]
        if dep.replacement:
            lines.append(f"   - Replacement: {dep.replacement}")
        lines.append(f"   - Description: {dep.description}")
        if dep.example:
            lines.append(f"   - Example: {dep.example}")
        if dep.version:
            lines.append(f"   - Since version: {dep.version}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


@mcp.tool()
async def check_flutter_deprecations(code: str, dedupe: bool = False) -> str:
    """
    Check Flutter code for deprecated APIs and get suggestions for replacements.

    Matches the snippet against curated deprecation patterns and against every
    API name in the local deprecations cache. The cache is not refreshed by
    this call.

    Args:
        code: The Dart/Flutter code snippet to analyze
        dedupe: Report each deprecated API only once (default: False)

    Returns:
        A list of the deprecated APIs found, with replacements where known
    """
    bind_contextvars(tool="check_flutter_deprecations")
    deprecations = matcher.check(code, dedupe=dedupe)
    logger.info("code_checked", code_length=len(code), matches=len(deprecations))

    if not deprecations:
        return "No deprecated APIs found in the provided code."

    return "Found deprecated APIs:\n\n" + format_deprecations(deprecations)


@mcp.tool()
async def list_flutter_deprecations() -> str:
    """
    Get a list of all known Flutter deprecations from the local cache.

    Returns:
        Every cached deprecation, sorted by API name
    """
    bind_contextvars(tool="list_flutter_deprecations")
    try:
        cache = cache_store.load()
    except CacheError as e:
        logger.error("list_cache_load_failed", error=str(e))
        return render_error_text("Error loading deprecations", error_response_from_exception(e))

    if not cache.deprecations:
        return "No deprecations found in cache. Try updating the cache first."

    ordered = sorted(cache.deprecations, key=lambda dep: dep.api)
    header = f"Flutter Deprecations (Last updated: {format_timestamp(cache.last_updated)})\n\n"
    return header + format_deprecations(ordered)


@mcp.tool()
async def update_flutter_deprecations(force: bool = False) -> str:
    """
    Update the Flutter deprecations cache by scanning the Flutter source code on GitHub.

    The scan is skipped while the cache is younger than its time-to-live
    (24 hours by default) unless force is set.

    Args:
        force: Rescan even if the cache is still fresh (default: False)

    Returns:
        Outcome of the update and the resulting number of deprecations
    """
    bind_contextvars(tool="update_flutter_deprecations")
    try:
        result = await orchestrator.refresh(force=force)
    except CacheError as e:
        logger.error("update_failed", error=str(e))
        return render_error_text("Error updating deprecations cache", error_response_from_exception(e))

    last_updated = format_timestamp(result.last_updated)
    if not result.updated:
        return (
            f"Deprecations cache is up to date. {result.total} deprecations cached. "
            f"Last updated: {last_updated}"
        )

    message = (
        f"Successfully updated deprecations cache. Found {result.total} deprecations. "
        f"Last updated: {last_updated}"
    )
    if result.failed_units:
        message += (
            f"\n\nWarning: {len(result.failed_units)} directories or files could not be scanned "
            f"(for example {result.failed_units[0]}). They will be retried on the next update."
        )
    return message


@mcp.tool()
async def check_flutter_version_info() -> str:
    """
    Get the latest Flutter version and check availability in FVM and Docker images
    (instrumentisto/flutter and cirrusci/flutter).

    Returns:
        A report of the latest stable version and where it is available
    """
    bind_contextvars(tool="check_flutter_version_info")
    try:
        info = await get_flutter_version_info(policy=orchestrator.source.policy)
    except FETCH_ERRORS as e:
        logger.error("version_info_failed", error=str(e), error_type=type(e).__name__)
        return render_error_text("Error getting Flutter version info", error_response_from_exception(e))
    return info.details


@mcp.tool()
async def flutter_deprecations_status() -> Dict[str, Any]:
    """
    Check the health of the local deprecations cache.

    Returns:
        Cache statistics including entry count, age and staleness
    """
    bind_contextvars(tool="flutter_deprecations_status")
    try:
        stats = cache_store.get_stats()
    except CacheError as e:
        return error_response_from_exception(e, context={"cache_path": str(cache_store.cache_path)})

    return {
        "status": "stale" if stats["is_stale"] else "ok",
        "version": __version__,
        "ttl_hours": cache_store.ttl_hours,
        "cache": stats,
    }


def refresh_on_startup() -> None:
    """Refresh a stale cache before serving; failures are only logged."""
    try:
        result = asyncio.run(orchestrator.refresh())
    except CacheError as e:
        logger.warning("startup_refresh_failed", error=str(e))
        return
    logger.info("startup_refresh_done", updated=result.updated, total=result.total)


def main():
    """Main entry point for the Flutter Deprecations MCP server"""
    # When running from CLI, the header is already printed
    if not hasattr(sys, '_flutter_deprecations_cli'):
        logger.info("flutter_deprecations_starting", version=__version__)

    if settings.refresh_on_start:
        refresh_on_startup()

    try:
        logger.info("cache_ready", stats=cache_store.get_stats())
    except CacheError as e:
        logger.warning("cache_initialization_warning", error=str(e))

    if settings.transport == 'stdio':
        mcp.run()
    elif settings.transport == 'sse':
        logger.info("starting_sse_transport", host=settings.host, port=settings.port)
        mcp.settings.host = settings.host
        mcp.settings.port = settings.port
        mcp.run(transport='sse')
    elif settings.transport == 'http':
        logger.info("starting_http_transport", host=settings.host, port=settings.port)
        mcp.settings.host = settings.host
        mcp.settings.port = settings.port
        mcp.run(transport='streamable-http')


if __name__ == "__main__":
    main()
