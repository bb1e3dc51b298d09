"""Flutter Deprecations MCP Server - deprecated Flutter API detection for AI assistants"""

__version__ = "0.2.0"


def main():
    """Run the MCP server."""
    from .server import main as server_main
    server_main()
