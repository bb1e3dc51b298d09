#!/usr/bin/env python3
"""CLI entry point for the Flutter Deprecations MCP Server"""

import argparse
import asyncio
import os
import sys

from . import __version__


def _apply_environment(args) -> None:
    """Expose CLI flags to the server through its environment variables."""
    if args.cache_dir:
        os.environ['CACHE_DIR'] = args.cache_dir
    if args.debug:
        os.environ['DEBUG'] = '1'
    if args.ttl_hours is not None:
        os.environ['FLUTTER_DEPRECATIONS_TTL_HOURS'] = str(args.ttl_hours)
    if args.branch:
        os.environ['FLUTTER_DEPRECATIONS_BRANCH'] = args.branch
    if args.release_notes:
        os.environ['FLUTTER_DEPRECATIONS_RELEASE_NOTES'] = '1'
    if args.no_refresh:
        os.environ['FLUTTER_DEPRECATIONS_REFRESH_ON_START'] = '0'

    os.environ['MCP_TRANSPORT'] = args.transport
    os.environ['MCP_PORT'] = str(args.port)
    os.environ['MCP_HOST'] = args.host


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='flutter-deprecations',
        description='Flutter Deprecations MCP Server - detect deprecated Flutter APIs in code',
        epilog='For more information, visit: https://github.com/flutter-mcp/flutter-deprecations'
    )

    parser.add_argument(
        'command',
        choices=['start', 'serve', 'update', 'clear-cache', 'show-cache', 'version', 'help'],
        nargs='?',
        default='start',
        help='Command to run (default: start)'
    )

    parser.add_argument(
        '--cache-dir',
        default=None,
        help='Custom cache directory (default: platform-specific)'
    )

    parser.add_argument(
        '--ttl-hours',
        type=float,
        default=None,
        help='Hours before the deprecations cache is considered stale (default: 24)'
    )

    parser.add_argument(
        '--branch',
        default=None,
        help='flutter/flutter branch to scan (default: master)'
    )

    parser.add_argument(
        '--force',
        action='store_true',
        help='With "update": rescan even if the cache is still fresh'
    )

    parser.add_argument(
        '--release-notes',
        action='store_true',
        help='Also extract deprecations from recent Flutter release notes'
    )

    parser.add_argument(
        '--no-refresh',
        action='store_true',
        help='Do not refresh a stale cache when the server starts'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--transport',
        choices=['stdio', 'sse', 'http'],
        default='stdio',
        help='Transport protocol to use (default: stdio)'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=8000,
        help='Port to listen on for HTTP/SSE transport (default: 8000)'
    )

    parser.add_argument(
        '--host',
        default='127.0.0.1',
        help='Host to bind to for HTTP/SSE transport (default: 127.0.0.1)'
    )

    return parser


def run_update(force: bool) -> int:
    """Refresh the cache, printing progress to the terminal."""
    from rich.console import Console

    from .cache import get_cache
    from .config import Settings
    from .error_handling import CacheError
    from .logging_utils import configure_logging
    from .refresh import create_orchestrator

    settings = Settings.from_env()
    configure_logging(settings.debug)
    console = Console(stderr=True)
    store = get_cache(settings.cache_dir, settings.ttl_hours)
    orchestrator = create_orchestrator(settings, store)

    console.print("[bold cyan]🔄 Updating Flutter deprecations cache...[/bold cyan]")
    try:
        result = asyncio.run(
            orchestrator.refresh(force=force, progress=lambda message: console.print(f"  {message}", markup=False))
        )
    except CacheError as e:
        console.print(f"[red]❌ Error updating deprecations cache: {e}[/red]")
        return 1

    last_updated = result.last_updated.strftime("%Y-%m-%d %H:%M:%S")
    if result.updated:
        console.print(
            f"[green]✅ Successfully updated deprecations cache. Found {result.total} deprecations. "
            f"Last updated: {last_updated}[/green]"
        )
        if result.failed_units:
            console.print(f"[yellow]⚠️ {len(result.failed_units)} directories or files could not be scanned[/yellow]")
    else:
        console.print(f"[green]✅ Cache is fresh ({result.total} deprecations, last updated {last_updated}). "
                      "Use --force to rescan.[/green]")
    return 0


def run_clear_cache() -> int:
    from rich.console import Console

    from .cache import get_cache
    from .config import Settings
    from .error_handling import CacheError

    settings = Settings.from_env()
    console = Console(stderr=True)
    console.print("🗑️ Clearing Flutter deprecations cache...")
    try:
        get_cache(settings.cache_dir, settings.ttl_hours).clear()
    except CacheError as e:
        console.print(f"[red]❌ Error clearing deprecations cache: {e}[/red]")
        return 1
    console.print("[green]✅ Successfully cleared deprecations cache[/green]")
    return 0


def run_show_cache() -> int:
    from rich.console import Console

    from .cache import get_cache
    from .config import Settings
    from .error_handling import CacheError
    from .logging_utils import render_cache_table

    settings = Settings.from_env()
    console = Console()
    try:
        cache = get_cache(settings.cache_dir, settings.ttl_hours).load()
    except CacheError as e:
        console.print(f"[red]❌ Error loading deprecations cache: {e}[/red]")
        console.print("💡 Try running 'flutter-deprecations update' to create the cache first")
        return 1

    if not cache.deprecations:
        console.print("📭 No deprecations found in cache")
        console.print("💡 Try running 'flutter-deprecations update' to populate the cache")
        return 0

    console.print(render_cache_table(cache))
    console.print(f"✨ Total: {len(cache)} deprecations found")
    return 0


def main():
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args()
    _apply_environment(args)

    if args.command == 'version':
        print(f"Flutter Deprecations MCP Server v{__version__}", file=sys.stderr)
        sys.exit(0)

    elif args.command == 'help':
        parser.print_help(sys.stderr)
        sys.exit(0)

    elif args.command == 'update':
        sys.exit(run_update(args.force))

    elif args.command == 'clear-cache':
        sys.exit(run_clear_cache())

    elif args.command == 'show-cache':
        sys.exit(run_show_cache())

    else:  # start or serve
        from rich.console import Console

        from .logging_utils import print_server_header
        print_server_header(__version__)

        console = Console(stderr=True)
        console.print(f"\n[bold green]🚀 Starting Flutter Deprecations MCP Server v{__version__}[/bold green]")
        if args.cache_dir:
            console.print(f"[dim]💾 Cache directory: {args.cache_dir}[/dim]")

        if args.transport == 'stdio':
            console.print("[yellow]⚡ Server running via STDIO - connect your AI assistant[/yellow]")
        else:
            console.print(f"[yellow]🌐 Server running on {args.transport.upper()} transport[/yellow]")
            console.print(f"[yellow]📡 Listening on http://{args.host}:{args.port}[/yellow]")

        console.print("[yellow]⚡ Use Ctrl+C to stop the server[/yellow]\n")

        # Set flag to indicate we're running from CLI
        sys._flutter_deprecations_cli = True

        try:
            from . import main as server_main
            server_main()
        except KeyboardInterrupt:
            print("\n\n✅ Server stopped", file=sys.stderr)


if __name__ == "__main__":
    main()
